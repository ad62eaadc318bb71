"""打包配置。"""

from __future__ import annotations

from pathlib import Path

from setuptools import find_packages, setup


ROOT = Path(__file__).resolve().parent
VERSION = "0.1.0"


setup(
    name="pixeloffice-dashboard",
    version=VERSION,
    description="部门活跃状态聚合与 WebSocket 实时推送服务",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "pydantic>=2.5",
        "httpx>=0.27",
    ],
    extras_require={
        "test": ["pytest>=7.4"],
    },
)
