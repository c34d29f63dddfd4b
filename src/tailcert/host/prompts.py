"""操作员交互提示。"""

from __future__ import annotations


def ask(prompt: str) -> str:
    return input(prompt).strip()


def confirm(prompt: str) -> bool:
    """仅 y/Y 视为确认。"""
    return ask(prompt) in ("y", "Y")


def pause(prompt: str) -> None:
    input(prompt)
