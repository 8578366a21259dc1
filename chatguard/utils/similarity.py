# chatguard/utils/similarity.py
"""
Сходство строк на основе расстояния Левенштейна (rapidfuzz).

При истории из 10 сообщений и ограниченной длине текста сравнение
укладывается в O(10 * L^2) на одно сообщение, чего достаточно для чата.
"""
from rapidfuzz.distance import Levenshtein


def levenshtein(a: str, b: str) -> int:
    """
    Расстояние редактирования (вставка, удаление, замена стоят 1).

    Args:
        a: Первая строка
        b: Вторая строка

    Returns:
        Минимальное число правок, превращающих a в b
    """
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Нормализованное сходство в диапазоне [0, 1].

    1 - levenshtein(a, b) / max(len(a), len(b)); две пустые строки дают 1.0.
    """
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)
