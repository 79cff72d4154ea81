"""
Prompt builders for every model call.

Contracts are Russian supply agreements, so prompts are written in Russian.
"""

import json
from typing import Dict, List, Sequence

from models import Paragraph, Perspective

CHECKLIST_MATCH_MARKER = "✅ Соответствует требованию:"
PARTIAL_MATCH_MARKER = "🔶 Частично соответствует требованию:"

_ROLES = {
    Perspective.BUYER.value: ("Покупателя", "покупателя"),
    Perspective.SUPPLIER.value: ("Поставщика", "поставщика"),
}


def role_of(perspective: str) -> str:
    return _ROLES.get(str(perspective), _ROLES["buyer"])[0]


def expert_instruction(perspective: str) -> str:
    return (
        "Ты - эксперт по анализу договоров поставки в России. "
        f"Анализируй договоры с точки зрения {role_of(perspective)}."
    )


VERIFICATION_INSTRUCTION = "Ты - эксперт по анализу договоров. Проверяй только реальные противоречия."
CLASSIFICATION_INSTRUCTION = "Ты - эксперт по классификации пунктов договоров поставки."
STRUCTURE_INSTRUCTION = "Ты - эксперт по структурному анализу договоров."


def build_chunk_prompt(
    chunk_id: str,
    paragraphs: Sequence[Paragraph],
    checklist: str,
    perspective: str,
    risks: str = "",
) -> str:
    """Classification of every paragraph plus a rights tally, in one call."""
    role, beneficiary = _ROLES.get(str(perspective), _ROLES["buyer"])
    payload = json.dumps([{"id": p.id, "text": p.text} for p in paragraphs], ensure_ascii=False)
    risk_block = f"\nТИПОВЫЕ РИСКИ, НА КОТОРЫЕ СТОИТ ОБРАТИТЬ ВНИМАНИЕ:\n{risks.strip()}\n" if risks and risks.strip() else ""

    return f"""Ты - эксперт по анализу договоров для {role}.

ОБЯЗАТЕЛЬНЫЕ ТРЕБОВАНИЯ (ЧЕК-ЛИСТ):
{checklist}
{risk_block}
Проанализируй каждый абзац и сопоставь его с требованиями чек-листа.

Категории:
"checklist" - абзац полностью соответствует требованию. Комментарий начинай с "{CHECKLIST_MATCH_MARKER} [цитата из чек-листа]"
"partial" - частичное соответствие. Комментарий: "{PARTIAL_MATCH_MARKER} [цитата]. Выполнено: [...]. Отсутствует: [...]"
"risk" - риски для {beneficiary}
"ambiguous" - неоднозначные условия, требующие пояснений
"deemed_acceptance" - срок для действия без последствий бездействия (риск молчания)
"external_refs" - ссылки на ГОСТы, ТУ, регламенты и другие внешние документы
null - нейтральные пункты (реквизиты, адреса), БЕЗ комментария и рекомендации

Если пункт заслуживает комментария, у него обязана быть категория.
Абзацы с id, начинающимся на "overlap_", даны только как контекст - не классифицируй их.
Если видишь противоречие с другими частями договора, отметь его в комментарии.

Абзацы: {payload}

Дополнительно посчитай права сторон в этом фрагменте (chunkRightsAnalysis):
- buyerRightsCount / supplierRightsCount - число прав каждой стороны
- rightsDetails - краткий список "Сторона: право (п. id)"
- classifiedClauses - объекты {{"id", "party", "type"}}, где
  party: "buyer" | "supplier" | "both" | "neutral",
  type: "termination" | "modification" | "liability" | "control" | "procedural"

Верни JSON:
{{
  "chunkId": "{chunk_id}",
  "analysis": [
    {{"id": "p1", "category": "checklist", "comment": "{CHECKLIST_MATCH_MARKER} Сроки поставки", "recommendation": null}},
    {{"id": "p2", "category": "ambiguous", "comment": "Формулировка 'в разумные сроки' неоднозначна", "recommendation": "Указать срок в днях"}},
    {{"id": "p3", "category": null, "comment": null, "recommendation": null}}
  ],
  "chunkRightsAnalysis": {{
    "buyerRightsCount": 1,
    "supplierRightsCount": 0,
    "rightsDetails": ["Покупатель: право расторгнуть при просрочке (п. p1)"],
    "classifiedClauses": [{{"id": "p1", "party": "buyer", "type": "termination"}}]
  }}
}}"""


def build_verification_prompt(text1: str, value1: str, text2: str, value2: str) -> str:
    return f"""Проанализируй два пункта договора на предмет противоречия:

ПУНКТ 1: "{text1[:500]}"
ЗНАЧЕНИЕ 1: {value1}

ПУНКТ 2: "{text2[:500]}"
ЗНАЧЕНИЕ 2: {value2}

Эти пункты действительно противоречат друг другу? Отвечай только JSON:
{{
  "isContradiction": true,
  "severity": "high",
  "explanation": "Краткое объяснение",
  "recommendation": "Краткая рекомендация"
}}"""


def build_contradictions_prompt(digest: List[Dict[str, str]], limit: int) -> str:
    digest_json = json.dumps(digest, ensure_ascii=False, indent=2)
    return f"""Перед тобой ключевые пункты договора с результатами анализа. Найди пары пунктов, которые прямо или косвенно противоречат друг другу.

ПУНКТЫ:
{digest_json}

Ищи противоречия в сроках, суммах и процентах, ответственности, основаниях расторжения и изменения,
процедурах (два механизма для одной цели), логике (пункты, нейтрализующие друг друга) и приоритете норм.

Если противоречий нет, верни пустой массив. Иначе укажи до {limit} самых критичных.
В поле "text" возвращай полный текст пункта.

Верни JSON:
{{
  "contradictions": [
    {{
      "id": "contr_1",
      "type": "temporal",
      "description": "Краткое описание (до 150 символов)",
      "conflictingParagraphs": {{
        "paragraph1": {{"text": "Полный текст первого пункта", "value": "Значение 1"}},
        "paragraph2": {{"text": "Полный текст второго пункта", "value": "Значение 2"}}
      }},
      "severity": "high",
      "recommendation": "Краткая рекомендация (до 120 символов)"
    }}
  ]
}}

Типы: "temporal", "financial", "quantitative", "legal", "procedural", "logical", "priority".
Серьезность: "high", "medium", "low"."""


def build_classification_prompt(items: Sequence[Dict[str, str]]) -> str:
    listing = "\n\n".join(f"- {item['id']}: {item['text']}" for item in items)
    return f"""Определи, какая сторона получает реальное преимущество от каждого пункта.

ПУНКТЫ:
{listing}

Правила:
1. Ответственность Покупателя - право Поставщика: "Покупатель уплачивает пеню..." -> party "supplier", type "liability".
2. Ответственность Поставщика - право Покупателя: "Поставщик уплачивает неустойку..." -> party "buyer", type "liability".
3. Одностороннее изменение условий -> type "modification".
4. Расторжение или отказ от договора -> type "termination".
5. Проверка, приемка, отклонение -> type "control".
6. Прочие процедурные права -> type "procedural".
Обязанности и технические процедуры - party "neutral". "both" - только для полностью симметричных прав.

Верни JSON:
{{"classifications": [{{"id": "p1", "party": "supplier", "type": "liability"}}]}}"""


def build_logical_defects_prompt(paragraphs: Sequence[Paragraph], clause_numbers: Sequence[str]) -> str:
    listing = "\n\n".join(f"{p.id}: {p.text[:300]}" for p in paragraphs)
    return f"""Проанализируй пункты договора на предмет логических ошибок в ссылках:

ПУНКТЫ ДЛЯ АНАЛИЗА:
{listing}

ДОСТУПНЫЕ ПУНКТЫ В ДОГОВОРЕ:
{", ".join(clause_numbers)}

Найди:
1. Пункты об ответственности, ссылающиеся сами на себя вместо пунктов с обязательствами
2. Ссылки на неподходящие по смыслу пункты
3. Отсутствие ссылок там, где они логически необходимы

Верни JSON:
{{
  "logicalDefects": [
    {{
      "id": "logic_error_1",
      "type": "logical_error",
      "description": "Описание ошибки",
      "severity": "high",
      "recommendation": "Как исправить",
      "location": "id абзаца"
    }}
  ]
}}"""


def _section(title: str, lines: Sequence[str], empty: str) -> str:
    body = "\n- ".join(lines) if lines else empty
    return f"{title}:\n{body}"


def build_summary_prompt(perspective: str, sections: Dict[str, List[str]], stats: Dict[str, int]) -> str:
    parts = [
        _section("КРИТИЧНЫЕ РИСКИ", sections["risks"], "Критичных рисков не обнаружено"),
        _section("ПРОБЛЕМЫ МОЛЧАНИЯ/БЕЗДЕЙСТВИЯ", sections["deemed_acceptance"], "Проблем молчания не обнаружено"),
        _section("ВНЕШНИЕ ССЫЛКИ", sections["external_refs"], "Внешних ссылок не обнаружено"),
        _section("ЧАСТИЧНОЕ СООТВЕТСТВИЕ", sections["partial"], "Частичных проблем не обнаружено"),
        _section("ОТСУТСТВУЮЩИЕ ТРЕБОВАНИЯ", sections["missing"], "Все требования выполнены"),
        _section("ПРОТИВОРЕЧИЯ", sections["contradictions"], "Противоречий не обнаружено"),
        _section("ДИСБАЛАНС ПРАВ", sections["imbalance"], "Дисбаланса прав не обнаружено"),
    ]
    stats_block = "\n".join([
        f"- Всего проанализировано пунктов: {stats['items']}",
        f"- Найдено рисков: {stats['risks']}",
        f"- Отсутствующих требований: {stats['missing']}",
        f"- Противоречий: {stats['contradictions']}",
        f"- Дисбалансов прав: {stats['imbalance']}",
    ])
    joined = "\n\n".join(parts)

    return f"""На основе полного анализа договора сформируй итоговую сводку для {role_of(perspective)}.

{joined}

СТАТИСТИКА:
{stats_block}

Верни JSON:
{{
  "structuralAnalysis": {{
    "overallAssessment": "Общая оценка договора (2-3 предложения)",
    "keyRisks": ["3-5 самых критичных рисков"],
    "structureComments": "Комментарий по структуре",
    "legalCompliance": "Оценка соответствия российскому законодательству",
    "recommendations": ["3-5 самых важных рекомендаций"]
  }}
}}

Фокусируйся на проблемах, которые могут привести к реальным убыткам или правовым рискам."""
