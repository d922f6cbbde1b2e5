"""
指南清單載入模組

將原始指南號碼（CSV 欄位、文字檔每行一筆或字串列表）轉換為 Guide 物件。
空白列會被捨棄，重複號碼只保留第一筆。
"""

import csv
import logging
import os
from typing import Dict, Iterable, List

from .models import Guide

logger = logging.getLogger(__name__)


# 可接受的指南欄位名稱（依優先順序）
GUIDE_COLUMNS = ("GUIA", "Guía", "Guide")

# 範例批次，045-12195385 為已知尚未抵達的指南
SAMPLE_GUIDE_NUMBERS = [
    "071-57197840",
    "235-12345678",
    "045-12195385",
    "456-98765432",
]


def build_batch(raw_numbers: Iterable[str]) -> List[Guide]:
    """
    建立一個指南批次

    Args:
        raw_numbers: 原始指南號碼

    Returns:
        Guide 列表，已去除空白與重複號碼
    """
    guides: List[Guide] = []
    seen = set()
    skipped_blank = 0

    for raw in raw_numbers:
        number = "" if raw is None else str(raw).strip()
        if not number:
            skipped_blank += 1
            continue
        if number in seen:
            logger.warning("Duplicate guide number ignored: %s", number)
            continue
        seen.add(number)
        guides.append(Guide.from_number(number))

    if skipped_blank:
        logger.info("Ignored %d blank rows", skipped_blank)
    return guides


def _guide_value(row: Dict) -> str:
    """取得列中的指南號碼欄位"""
    for column in GUIDE_COLUMNS:
        value = row.get(column)
        if value is not None and str(value).strip():
            return str(value)
    return ""


def load_guides_from_rows(rows: Iterable[Dict]) -> List[Guide]:
    """
    從表格列載入指南

    Args:
        rows: 每列為 dict，指南號碼位於 GUIA / Guía / Guide 欄位

    Returns:
        Guide 列表
    """
    rows = list(rows)
    guides = build_batch(_guide_value(row) for row in rows)
    logger.info("Loaded %d valid guides from %d rows", len(guides), len(rows))
    return guides


def load_guides_from_file(path: str) -> List[Guide]:
    """
    從檔案載入指南

    .csv 檔案使用標題列尋找指南欄位；其他檔案視為每行一個號碼。

    Raises:
        FileNotFoundError: 檔案不存在時
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Guide file not found: {path}")

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        if path.lower().endswith(".csv"):
            return load_guides_from_rows(csv.DictReader(f))
        return build_batch(line for line in f)
