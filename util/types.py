# util/types.py
from typing import Literal, TypedDict


# Flow: narrow types for the raw dicts that cross the model boundary.
QuestionType = Literal["yesno", "select", "text"]


class QuestionOptionDict(TypedDict):
    value: str
    label: str


class AnthropicTextBlock(TypedDict, total=False):
    type: str
    text: str
