"""
Root test configuration.

Test organization:
- unit/        Fast, isolated, no I/O, scripted model client
- integration/ Component boundaries, real I/O to temp locations

Run specific levels:
    pytest tests/unit -v           # Fast feedback loop
    pytest tests/integration -v    # Before commit
    pytest tests -v                # Everything
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast isolated tests")
    config.addinivalue_line("markers", "integration: Component boundary tests")
    config.addinivalue_line("markers", "slow: Tests that take > 1s")


SAMPLE_CONTRACT = """ДОГОВОР ПОСТАВКИ

1. ПРЕДМЕТ ДОГОВОРА
1.1. Поставщик обязуется поставить Покупателю товар в количестве и ассортименте согласно спецификации.
1.2. Покупатель обязуется принять и оплатить товар в порядке, предусмотренном настоящим договором.

2. СРОКИ ПОСТАВКИ
2.1. Срок поставки товара составляет 10 дней с момента подписания договора.
2.2. Поставщик вправе перенести срок поставки товара на 5 дней без согласования с Покупателем.

3. ОТВЕТСТВЕННОСТЬ СТОРОН
3.1. За нарушение сроков оплаты Покупатель уплачивает пеню в размере 0,1% от суммы задолженности.
3.2. За нарушение положений п. 3.2 Поставщик уплачивает штраф в размере 5000 рублей.
3.3. Поставщик вправе в одностороннем порядке изменить цену товара, ссылаясь на п. 7.4.
"""

SAMPLE_CHECKLIST = """• Предмет договора и количество товара должны быть определены
• Срок поставки товара должен быть указан в днях
• Гарантийный период эксплуатации не менее 12 месяцев
"""


@pytest.fixture
def sample_contract():
    """Seven numbered clauses under three uppercase headings."""
    return SAMPLE_CONTRACT


@pytest.fixture
def sample_checklist():
    """Three requirements; the warranty one is not covered by the contract."""
    return SAMPLE_CHECKLIST


# === Performance tracking ===

UNIT_TEST_BUDGET = 0.1  # seconds


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    """Slowest tests, plus unit tests over their time budget."""
    passed = terminalreporter.stats.get("passed", [])
    durations = sorted(
        ((getattr(report, "duration", 0.0), report.nodeid) for report in passed),
        reverse=True,
    )
    if not durations:
        return

    terminalreporter.write_sep("=", "slowest 5 tests")
    for duration, nodeid in durations[:5]:
        terminalreporter.write_line(f"  {duration:.2f}s  {nodeid}")

    slow_units = [nodeid for duration, nodeid in durations if duration > UNIT_TEST_BUDGET and "unit/" in nodeid]
    if slow_units:
        terminalreporter.write_line(f"  {len(slow_units)} unit test(s) slower than {UNIT_TEST_BUDGET * 1000:.0f}ms")
