"""聊天记录分析提示模板，支持中英文。"""

from datetime import datetime

from ..tools.models import ToolDefinition

SUPPORTED_LANGUAGES = ("zh", "en")

_WEEKDAYS_ZH = ["星期一", "星期二", "星期三", "星期四", "星期五", "星期六", "星期日"]

SYSTEM_TEMPLATE_ZH = """你是一个群聊记录分析助手。当前日期是 {current_date}。

你可以使用以下工具来获取群聊数据：

{tools}

时间处理要求：
- 如果用户提到"X月"但没有指定年份，默认使用当前年份（{year}年）
- 如果当前月份还没到用户提到的月份，则使用去年
- 例如：现在是{year}年{month}月，用户问"10月的聊天"应该查询{october_year}年10月

根据用户的问题，选择合适的工具获取数据，然后基于数据给出回答。

回答要求：
1. 基于工具返回的数据回答，不要编造信息
2. 如果数据不足以回答问题，请说明
3. 回答要简洁明了，使用 Markdown 格式
4. 可以引用具体的发言作为证据
5. 对于统计数据，可以适当总结趋势和特点"""

SYSTEM_TEMPLATE_EN = """You are a group chat log analysis assistant. Today is {current_date}.

You can use the following tools to query the chat data:

{tools}

Time handling rules:
- If the user mentions a month without a year, assume the current year ({year})
- If that month has not yet arrived this year, use the previous year instead
- For example: it is now {month_name} {year}, so "the chats in October" means October {october_year}

Pick the tools that fit the question, gather the data, then answer based on it.

Answer requirements:
1. Answer only from the data the tools return; never make things up
2. If the data is not enough to answer, say so
3. Be concise and use Markdown
4. Quote specific messages as evidence where useful
5. For statistics, summarize trends and notable patterns"""

FORCED_FINISH_MESSAGES = {
    "zh": "请根据已获取的信息给出回答，不要再调用工具。",
    "en": "Please answer based on the information gathered so far and do not call any more tools.",
}

NO_TOOLS_TEXT = {"zh": "（当前没有可用工具）", "en": "(no tools available)"}


def _check_language(language: str) -> str:
    if language not in SUPPORTED_LANGUAGES:
        raise ValueError(
            f"Unsupported prompt language '{language}', expected one of {SUPPORTED_LANGUAGES}"
        )
    return language


def _format_tools(tools: list[ToolDefinition], language: str) -> str:
    if not tools:
        return NO_TOOLS_TEXT[language]
    lines = []
    for index, definition in enumerate(tools, start=1):
        summary = definition.description.split(". ")[0].rstrip(".")
        lines.append(f"{index}. {definition.name} - {summary}")
    return "\n".join(lines)


def build_system_prompt(
    tools: list[ToolDefinition],
    language: str = "zh",
    now: datetime | None = None,
) -> str:
    """构建带当前日期的系统提示。

    Args:
        tools: 本次运行提供给模型的工具定义
        language: 提示语言，zh或en
        now: 当前时间，默认取本地时间

    Returns:
        系统提示文本
    """
    language = _check_language(language)
    now = now or datetime.now()
    october_year = now.year if now.month >= 10 else now.year - 1

    if language == "zh":
        current_date = (
            f"{now.year}年{now.month}月{now.day}日 {_WEEKDAYS_ZH[now.weekday()]}"
        )
        return SYSTEM_TEMPLATE_ZH.format(
            current_date=current_date,
            tools=_format_tools(tools, language),
            year=now.year,
            month=now.month,
            october_year=october_year,
        )

    return SYSTEM_TEMPLATE_EN.format(
        current_date=now.strftime("%A, %B %d, %Y"),
        tools=_format_tools(tools, language),
        year=now.year,
        month_name=now.strftime("%B"),
        october_year=october_year,
    )


def get_forced_finish_message(language: str = "zh") -> str:
    """轮数耗尽后追加的用户指令。"""
    return FORCED_FINISH_MESSAGES[_check_language(language)]
