"""assetflow - approval and visibility engine for marketing assets."""
