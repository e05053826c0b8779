"""
Prompt Templates

Immutable templates for the two completion calls the library makes. The
system message carries all catalog context; the user message is short.

The recommendation prompt lists candidates only by the fields the model
needs ({id, title, author, subject, popularity}) and tells it to pick ids
from that list. The model is still untrusted: its picks go through the
validation gate in recommendations.py.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field

from library_api.schemas.book import CatalogItem


@dataclass(frozen=True)
class PromptTemplate:
    """
    System + user message pair with {placeholders}.

    Attributes:
        name: Identifier used in logs
        version: Bumped whenever the wording changes
        system_template: System message
        user_template: User message
        tags: Metadata for grouping
    """

    name: str
    version: str
    system_template: str
    user_template: str
    tags: tuple[str, ...] = field(default_factory=tuple)

    def render(self, **kwargs: object) -> dict[str, str]:
        return {
            "system": self.system_template.format(**kwargs),
            "user": self.user_template.format(**kwargs),
        }


RECOMMEND_BOOKS = PromptTemplate(
    name="recommend_books",
    version="2.0.0",
    system_template=(
        "你是一位专业的图书馆员，根据用户查询和图书馆的真实藏书为用户推荐最合适的图书。\n\n"
        "用户查询：{query}\n\n"
        "图书馆当前相关藏书：\n"
        "{book_list}\n\n"
        "请根据用户的查询意图，从上述真实藏书中选择最合适的{limit}本书推荐给用户。\n\n"
        "要求：\n"
        "1. 只能推荐上述列表中的图书，使用真实的ID\n"
        "2. 根据相关性和质量排序\n"
        "3. 为每本书提供推荐理由\n"
        "4. 提供整体的推荐总结\n\n"
        "请以JSON格式返回：\n"
        "{{\n"
        '  "summary": "针对用户查询的总体推荐说明",\n'
        '  "recommendations": [\n'
        "    {{\n"
        '      "id": "真实的图书ID",\n'
        '      "title": "图书标题",\n'
        '      "author": "作者",\n'
        '      "subject": "分类",\n'
        '      "reason": "推荐理由(30-50字)"\n'
        "    }}\n"
        "  ]\n"
        "}}"
    ),
    user_template='请为查询"{query}"推荐图书',
    tags=("recommendation", "json"),
)


ANSWER_BOOK_QUESTION = PromptTemplate(
    name="answer_book_question",
    version="1.1.0",
    system_template=(
        "你是一位专业的图书馆员，为用户解答关于特定图书的问题。\n\n"
        "图书信息：\n"
        "- 标题：{title}\n"
        "- 作者：{author}\n"
        "- 出版社：{publisher}\n"
        "- 分类：{subject}\n"
        "- 语言：{language}\n"
        "- 热度：{popularity}\n\n"
        "请根据这本书的信息，专业地回答用户的问题。如果无法确定答案，请诚实说明。"
        "回答要简洁明了，一般控制在100-200字内。"
    ),
    user_template="{question}",
    tags=("qa", "book"),
)


def format_candidate_list(candidates: Sequence[CatalogItem]) -> str:
    """Numbered, one-line-per-book listing used as recommendation context."""
    return "\n".join(
        f"{index}. ID:{item.id} 《{item.title}》 作者:{item.author} "
        f"分类:{item.subject} 热度:{item.popularity:g}"
        for index, item in enumerate(candidates, start=1)
    )


def render_recommendation_prompt(
    query: str,
    candidates: Sequence[CatalogItem],
    limit: int,
) -> dict[str, str]:
    return RECOMMEND_BOOKS.render(
        query=query,
        book_list=format_candidate_list(candidates),
        limit=limit,
    )


def render_answer_prompt(item: CatalogItem, question: str) -> dict[str, str]:
    """Only the item's own fields go into the prompt, never other catalog records."""
    return ANSWER_BOOK_QUESTION.render(
        title=item.title,
        author=item.author or "未知",
        publisher=item.publisher or "未知",
        subject=item.subject or "未知",
        language=item.language or "未知",
        popularity=f"{item.popularity:g}",
        question=question,
    )
