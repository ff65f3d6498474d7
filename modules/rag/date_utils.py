"""날짜 범위 확장 유틸리티

기준일로부터 과거 방향으로 연속된 달력 날짜 목록을 생성
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from .exceptions import ValidationError

DATE_FORMAT = "%Y-%m-%d"


def expand_date_range(anchor: Optional[str], days: int) -> List[str]:
    """기준일 포함 과거 days일의 날짜 목록을 내림차순으로 반환

    Args:
        anchor: YYYY-MM-DD 형식 기준일 (비어있으면 빈 목록)
        days: 생성할 날짜 수

    Returns:
        ["2025-10-31", "2025-10-30", ...] 형태의 날짜 목록
    """
    if not anchor or days <= 0:
        return []

    try:
        start = datetime.strptime(anchor, DATE_FORMAT).date()
    except ValueError as e:
        raise ValidationError(f"invalid date '{anchor}': expected YYYY-MM-DD") from e

    return [(start - timedelta(days=i)).strftime(DATE_FORMAT) for i in range(days)]


def get_today_date() -> str:
    """오늘 날짜 (로컬 기준) YYYY-MM-DD"""
    return date.today().strftime(DATE_FORMAT)
