"""scribeflow -- 写作项目文档的 LLM 任务执行服务"""

__version__ = "0.1.0"
