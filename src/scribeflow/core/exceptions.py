"""核心异常体系

执行前置条件类错误在任何 store 写入之前抛出，由路由层映射为 JSON 错误响应。
"""


class ScribeflowError(Exception):
    """scribeflow 基础异常"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PreconditionError(ScribeflowError):
    """执行前置条件不满足（如必填 prompt 缺失）"""


class ConflictError(PreconditionError):
    """任务状态不允许该操作（如任务已不在 pending）"""


class ConfigError(PreconditionError):
    """Provider 配置缺失或非法"""


class NotFoundError(ScribeflowError):
    """任务/项目/目标文档不存在"""
