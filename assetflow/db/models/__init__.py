from assetflow.db.models.approval import ApprovalRecord
from assetflow.db.models.asset import AssetRecord
from assetflow.db.models.asset_share import AssetShare

__all__ = ["ApprovalRecord", "AssetRecord", "AssetShare"]
