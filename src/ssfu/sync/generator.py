"""Solution generation for detected synchronizations."""

import asyncio
import logging
import time
from dataclasses import dataclass

from ..llm import LLMClient, UnexpectedResponseError
from ..logging import JSONLLogger, get_logger
from ..signals.models import Signal

logger = logging.getLogger(__name__)

FALLBACK_UNEXPECTED = "No se pudo generar una solución. Intenta de nuevo."
FALLBACK_ERROR = "Hubo un error al generar la solución."

SOLUTION_PROMPT = """Basándote en una señal de contracción (miedo, incertidumbre) y una posterior señal de expansión (calma, claridad) que contiene la palabra "resonancia", genera una solución o un "siguiente paso" a seguir. La solución debe ser una frase corta y precisa que conecte ambos eventos.

Contracción:
{contraction}

Expansión (Resonancia):
{expansion}

Genera la solución en español. Ejemplo: "La incertidumbre del proyecto te invitó a confiar en que la ayuda llegaría de fuentes inesperadas."
"""


@dataclass(frozen=True)
class GeneratedSolution:
    """Solution text and whether it came from the model."""

    text: str
    ok: bool = True


def _describe(signal: Signal) -> str:
    return "\n".join([
        f"- Evento: {signal.text or ''}",
        f"- Pensamiento: {signal.thought or ''}",
        f"- Sentimiento: {signal.feeling or ''}",
        f"- Sensación Corporal: {signal.body_sensation or ''}",
    ])


def build_prompt(contraction: Signal, expansion: Signal) -> str:
    """Build the generation prompt for a contraction/expansion pair."""
    return SOLUTION_PROMPT.format(
        contraction=_describe(contraction),
        expansion=_describe(expansion),
    )


class SolutionGenerator:
    """Asks the LLM for a short sentence connecting two signals.

    Never raises: any failure turns into one of the fallback texts and is
    reported to the JSONL log.
    """

    def __init__(
        self,
        llm: LLMClient,
        timeout: float | None = 30.0,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            llm: The client used for completions.
            timeout: Seconds to wait for the model, None to wait forever.
            json_logger: Sink for failures, the global logger if None.
        """
        self.llm = llm
        self.timeout = timeout
        self.json_logger = json_logger or get_logger()

    async def generate(
        self,
        contraction: Signal,
        expansion: Signal,
    ) -> GeneratedSolution:
        """Generate the solution for a pair.

        Args:
            contraction: The earliest signal of the category.
            expansion: The latest signal of the category.

        Returns:
            The generated solution, or a fallback with ok=False.
        """
        prompt = build_prompt(contraction, expansion)
        user_id = contraction.user_id
        start = time.monotonic()

        try:
            text = await asyncio.wait_for(self.llm.complete(prompt), timeout=self.timeout)
        except UnexpectedResponseError as e:
            logger.error(f"Unexpected API response structure: {e}")
            self._report(str(e), user_id, start, kind="unexpected")
            return GeneratedSolution(FALLBACK_UNEXPECTED, ok=False)
        except asyncio.TimeoutError:
            logger.error(f"Solution generation timed out after {self.timeout}s")
            self._report("timeout", user_id, start, kind="timeout")
            return GeneratedSolution(FALLBACK_ERROR, ok=False)
        except Exception as e:
            logger.error(f"Error generating solution: {e}")
            self._report(str(e), user_id, start)
            return GeneratedSolution(FALLBACK_ERROR, ok=False)

        text = text.strip()
        if not text:
            logger.error("Unexpected API response structure: empty text")
            self._report("empty response", user_id, start, kind="unexpected")
            return GeneratedSolution(FALLBACK_UNEXPECTED, ok=False)

        return GeneratedSolution(text)

    def _report(self, error: str, user_id: str | None, start: float, kind: str = "error") -> None:
        self.json_logger.log_generator_error(
            error,
            user_id=user_id,
            duration_ms=(time.monotonic() - start) * 1000,
            kind=kind,
        )
