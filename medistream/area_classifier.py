"""Map drugs to a coarse medical area with an LLM."""

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import LLMConfig
from .llm import LLMClient
from .models import Row

logger = logging.getLogger(__name__)

AREAS = ("breast", "lung", "GI", "GU", "cardio", "neuro", "onco", "immuno", "endo", "derma", "other")
_AREAS_BY_LOWER = {area.lower(): area for area in AREAS}

BATCH_SIZE = 5

PROMPT_TEMPLATE = """Analiza la siguiente información de un medicamento y clasifica a qué área médica principal pertenece.

Área Terapéutica: {area}
Fármaco: {drug}
Molécula: {molecule}

Clasifica ÚNICAMENTE en una de estas categorías exactas:
- breast (cáncer de mama, tratamientos mamarios)
- lung (cáncer de pulmón, enfermedades respiratorias)
- GI (gastroenterología, sistema digestivo)
- GU (genitourinario, urología, nefrología)
- cardio (cardiología, cardiovascular)
- neuro (neurología, sistema nervioso)
- onco (oncología general, otros cánceres)
- immuno (inmunología, reumatología)
- endo (endocrinología, diabetes, hormonas)
- derma (dermatología)
- other (otros casos no clasificables)

Responde ÚNICAMENTE con una palabra: la categoría correspondiente."""

# (therapeutic area, drug, molecule)
Classification = Tuple[Optional[str], Optional[str], Optional[str]]


def normalize_area(answer: str) -> str:
    """Turn a free-form model answer into one of AREAS."""
    words = (answer or "").strip().strip(".").split()
    if not words:
        return "other"
    return _AREAS_BY_LOWER.get(words[0].strip(".,:;\"'").lower(), "other")


class AreaClassifier:
    """Classifies rows by area, caching one answer per input triple."""

    def __init__(self, client: LLMClient, config: LLMConfig):
        self.client = client
        self.config = config
        self._cache: Dict[Classification, str] = {}
        self._lock = threading.Lock()

    def classify(self, area: Optional[str], drug: Optional[str], molecule: Optional[str]) -> str:
        key = (area or "", drug or "", molecule or "")
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        prompt = PROMPT_TEMPLATE.format(
            area=area or "No especificada",
            drug=drug or "No especificado",
            molecule=molecule or "No especificada",
        )
        try:
            answer = self.client.complete(prompt, self.config.max_tokens, self.config.temperature)
        except Exception as e:
            logger.error(f"Area classification failed for {key}: {e}")
            return "other"

        result = normalize_area(answer)
        logger.debug(f"Area classification {key} -> {result}")
        with self._lock:
            self._cache[key] = result
        return result

    def classify_rows(
        self,
        rows: Iterable[Row],
        extractor: Callable[[Row], Classification],
    ) -> List[str]:
        """
        Classify many rows, in batches of 5.

        Returns:
            One area per row, in input order.
        """
        rows = list(rows)
        results: List[str] = []
        for start in range(0, len(rows), BATCH_SIZE):
            batch = rows[start:start + BATCH_SIZE]
            logger.info(f"Classifying rows {start + 1}-{start + len(batch)} of {len(rows)}")
            results.extend(self.classify(*extractor(row)) for row in batch)
        return results

    def available_areas(self) -> List[str]:
        with self._lock:
            return sorted(set(self._cache.values()))

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


def row_fields(row: Row) -> Classification:
    """Unmet Needs and Pharma Tactics share these column names."""
    return row.get("area_terapeutica"), row.get("farmaco"), row.get("molecula")


def medication_fields(row: Row) -> Classification:
    return row.get("area_terapeutica"), row.get("nombre_del_farmaco"), row.get("nombre_de_la_molecula")
