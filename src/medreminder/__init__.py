"""medreminder: 个人用药提醒调度服务"""

__version__ = "0.3.0"
