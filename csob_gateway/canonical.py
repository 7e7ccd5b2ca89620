"""
csob_gateway/canonical.py

署名対象文字列（canonical string）の生成

宣言順にフィールド値を文字列化し、値がない/空文字のフィールドを除外して
"|" で連結する。この文字列がそのまま署名・検証の対象になる。
"""

from typing import Any, ClassVar, Iterable, Iterator, Tuple

SEP = "|"


def stringify(value: Any) -> str:
    """
    フィールド値を署名用に文字列化

    - None → ""
    - bool → "true" / "false"
    - int → 10進数
    - canonical_string() を持つ値（Item, Cart） → その結果
    """
    if value is None:
        return ""
    # boolはintのサブクラスなので先に判定
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if hasattr(value, "canonical_string"):
        return value.canonical_string()
    raise TypeError(f"Cannot canonicalize value of type {type(value).__name__}")


def canonical_string(values: Iterable[Any]) -> str:
    """
    値の列からcanonical stringを生成

    Args:
        values: 宣言順に並んだフィールド値

    Returns:
        str: 空でない値を "|" で連結した文字列
    """
    segments = []
    for value in values:
        string = stringify(value)
        if string:
            segments.append(string)
    return SEP.join(segments)


class SignaturePart:
    """
    canonical stringを提供するmixin（pydanticモデル用）

    フィールドの順序はクラス定義の宣言順で固定される。
    signatureフィールドは自身の署名対象に含めない。
    """

    EXCLUDED_FIELDS: ClassVar[Tuple[str, ...]] = ("signature",)

    @classmethod
    def signing_field_names(cls) -> Tuple[str, ...]:
        return tuple(
            name for name in cls.model_fields
            if name not in cls.EXCLUDED_FIELDS
        )

    def signing_values(self) -> Iterator[Any]:
        for name in self.signing_field_names():
            yield getattr(self, name)

    def canonical_string(self) -> str:
        return canonical_string(self.signing_values())
