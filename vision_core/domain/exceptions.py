"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层统一捕获并转换为固定的兜底回复。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 可读错误信息（只写日志，不直接展示给用户）。
        http_status: 对应的 HTTP 状态码，默认 400。
        extra: 其他补充字段（例如 capability、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由 ResilientExecutor 负责重试/退避。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class MalformedResponseError(BusinessError):
    """响应成功但缺少预期字段（文本、图片或音频数据）。"""
