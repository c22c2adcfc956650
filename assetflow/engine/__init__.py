"""Approval and visibility engine.

Submodules are imported directly (``assetflow.engine.facade``) because the
domain shapes depend on :mod:`assetflow.engine.aggregation`.
"""
