"""
Configuration module for the DAG runner.
Loads settings from environment variables or .env file.
DAG 运行器配置模块。
从环境变量或 .env 文件加载所有配置项。
"""

import os
from dotenv import load_dotenv

load_dotenv()  # 自动读取项目根目录的 .env 文件（若存在），优先级低于系统环境变量

# --- DAG Execution ---
# --- DAG 执行参数 ---
MAX_PARALLEL_NODES = int(os.getenv("MAX_PARALLEL_NODES", "4"))  # 执行器工作协程数，即同时运行的最大节点数

# --- Logging ---
# --- 日志 ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()  # 驱动程序的日志级别（-v 时强制 DEBUG）

# --- Demo Driver ---
# --- 演示驱动 ---
DEMO_NODE_DELAY = float(os.getenv("DEMO_NODE_DELAY", "0.2"))  # 演示节点模拟耗时（秒）
