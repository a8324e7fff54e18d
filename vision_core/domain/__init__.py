"""领域层模型与协议。

包含：
- models: Turn / ImageAttachment / 能力请求与响应模型。
- conversation: ConversationStore 抽象。
- exceptions: 业务异常类型定义。
"""
