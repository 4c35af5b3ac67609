"""Task prompts for the email agent."""

from mail_agent.schemas.agent import AgentSendRequest

_ZH_TEMPLATE = """请帮我完成一封邮件的撰写与发送。

收件人邮箱：{to}
收件人简介：{recipient}
邮件意图：{intent}

步骤：
1. 使用 `web_search` 工具检索与收件人和邮件意图相关的公开资料（查询示例：“{recipient} {intent}”）{site_hint}。
2. 根据检索结果用中文撰写一封得体、简洁的邮件，包含主题和正文，可以附上一句轻松的技术小幽默。
3. 使用 `smtp_send` 工具将邮件发送到 {to}，只发送一次，不要向我确认。
4. 发送成功后，只回复一个 JSON 对象：{{"status": "sent", "messageId": "<smtp_send 返回的 messageId>"}}
"""

_EN_TEMPLATE = """Please compose and send one email for me.

Recipient address: {to}
About the recipient: {recipient}
Intent: {intent}

Steps:
1. Use the `web_search` tool to look up public information about the recipient and the intent (for example "{recipient} {intent}"){site_hint}.
2. Write a polite, concise email in English from what you found, with a subject and a body. A light piece of tech humor is welcome.
3. Send it to {to} with the `smtp_send` tool, exactly once, without asking me to confirm.
4. After it is sent, reply with only a JSON object: {{"status": "sent", "messageId": "<the messageId returned by smtp_send>"}}
"""


def build_task_prompt(request: AgentSendRequest) -> str:
    """Render the task prompt in the request's language."""
    if request.language == "en":
        template = _EN_TEMPLATE
        site_hint = f', preferring results from {request.site} (pass site="{request.site}")' if request.site else ""
    else:
        template = _ZH_TEMPLATE
        site_hint = f"，优先使用 {request.site} 的结果（调用时传入 site=\"{request.site}\"）" if request.site else ""
    return template.format(
        to=request.to,
        recipient=request.recipient,
        intent=request.intent,
        site_hint=site_hint,
    )
