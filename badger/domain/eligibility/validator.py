"""
Validación de elegibilidad de una promoción contra su plantilla.

Función pura: no toca la BD, se puede llamar como vista previa sobre un
borrador y de nuevo como filtro al enviar.

Reglas de asignación:
  - categoría concreta: cuenta insignias de esa categoría Y ese nivel exacto
    (un oro no cubre una regla de plata);
  - categoría "any": cuenta insignias de ese nivel en cualquier categoría;
  - cada insignia cubre como mucho una regla. Primero se llenan las reglas
    concretas y lo que sobra se reparte entre las reglas "any".
"""
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from badger.domain.errors import ValidationError
from badger.models.catalog_badge import BadgeCategory, BadgeLevel

ANY_CATEGORY = "any"


@dataclass(frozen=True)
class Rule:
    category: str          # valor de BadgeCategory o "any"
    level: BadgeLevel
    count: int

    @property
    def is_any(self) -> bool:
        return self.category == ANY_CATEGORY

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Rule":
        try:
            category = str(raw["category"])
            level = BadgeLevel(raw["level"])
            count = int(raw["count"])
        except (KeyError, ValueError, TypeError) as e:
            raise ValidationError(f"Invalid template rule {raw!r}: {e}")
        if category != ANY_CATEGORY:
            try:
                category = BadgeCategory(category).value
            except ValueError:
                raise ValidationError(f"Invalid template rule category {category!r}")
        if count < 1:
            raise ValidationError(f"Template rule count must be >= 1, got {count}")
        return cls(category=category, level=level, count=count)


@dataclass(frozen=True)
class ReservedBadge:
    badge_application_id: str
    category: BadgeCategory
    level: BadgeLevel


@dataclass(frozen=True)
class Requirement:
    category: str
    level: BadgeLevel
    required: int
    current: int

    @property
    def satisfied(self) -> bool:
        return self.current >= self.required

    def to_dict(self) -> dict:
        return {"category": self.category, "level": self.level.value, "required": self.required,
                "current": self.current, "satisfied": self.satisfied}


@dataclass(frozen=True)
class MissingBadge:
    category: str
    level: BadgeLevel
    count: int

    def to_dict(self) -> dict:
        return {"category": self.category, "level": self.level.value, "count": self.count}


@dataclass(frozen=True)
class Eligibility:
    requirements: List[Requirement]
    missing: List[MissingBadge]

    @property
    def is_valid(self) -> bool:
        return not self.missing

    # nombre usado por los clientes de la API anterior
    satisfied = is_valid


def parse_rules(raw_rules: Iterable[Mapping[str, Any] | Rule]) -> List[Rule]:
    return [r if isinstance(r, Rule) else Rule.from_dict(r) for r in (raw_rules or [])]


def evaluate(rules: Sequence[Mapping[str, Any] | Rule], reserved: Iterable[ReservedBadge]) -> Eligibility:
    parsed = parse_rules(rules)
    pool: Counter = Counter(
        (BadgeCategory(b.category).value, BadgeLevel(b.level)) for b in reserved
    )
    allocated: Dict[int, int] = {}

    # 1) reglas concretas
    for i, rule in enumerate(parsed):
        if rule.is_any:
            continue
        key = (rule.category, rule.level)
        take = min(pool[key], rule.count)
        pool[key] -= take
        allocated[i] = take

    # 2) reglas "any" con lo que quede de ese nivel
    for i, rule in enumerate(parsed):
        if not rule.is_any:
            continue
        need = rule.count
        take = 0
        for category in BadgeCategory:
            if take == need:
                break
            key = (category.value, rule.level)
            n = min(pool[key], need - take)
            pool[key] -= n
            take += n
        allocated[i] = take

    requirements = [
        Requirement(category=r.category, level=r.level, required=r.count, current=allocated[i])
        for i, r in enumerate(parsed)
    ]
    missing = [
        MissingBadge(category=q.category, level=q.level, count=q.required - q.current)
        for q in requirements if not q.satisfied
    ]
    return Eligibility(requirements=requirements, missing=missing)
