"""像素办公室看板：部门活跃状态聚合与实时推送服务。"""

__version__ = "0.1.0"
