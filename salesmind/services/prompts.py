"""Prompts sent to Gemini for transcription and call analysis.

Both prompts are in Portuguese because the recorded calls and the stored
feedback are in Portuguese.
"""

from __future__ import annotations

import json

from salesmind.services.analysis_contract import MAX_LIST_ITEMS

TRANSCRIPTION_PROMPT = (
    "Transcreva integralmente a conversa deste áudio, palavra por palavra, "
    "preservando a ordem das falas. Responda somente com o texto transcrito, "
    "sem títulos, comentários ou frases de apresentação."
)

# Example payload shown to the model; keys must match AnalysisResult aliases.
_ANALYSIS_SHAPE = {
    "resumo": "Síntese da ligação em até 200 caracteres",
    "pontosFortes": ["ponto forte"],
    "pontosFracos": ["ponto a melhorar"],
    "sugestoes": ["sugestão prática"],
    "sentimentScore": 70,
    "probabilidadeFechamento": 55,
    "categoriaAmbiental": "NEUTRO",
    "qualidadeAtendimento": 80,
    "aderenciaScript": 65,
    "gestaoObjecoes": 60,
    "objecoesIdentificadas": ["objeção do cliente"],
    "momentosChave": ["01:15 - momento relevante da conversa"],
}

_ANALYSIS_RULES = (
    "- sentimentScore, probabilidadeFechamento, qualidadeAtendimento, aderenciaScript "
    "e gestaoObjecoes são inteiros de 0 a 100.",
    "- categoriaAmbiental deve ser POSITIVO, NEUTRO ou NEGATIVO.",
    f"- Cada lista deve ter no máximo {MAX_LIST_ITEMS} itens curtos.",
    "- momentosChave começa sempre com o instante no formato MM:SS seguido de ' - '.",
    "- Use null quando não houver base na conversa para uma nota.",
    "- Não escreva nada fora do objeto JSON.",
)


def build_analysis_prompt(transcript: str) -> str:
    """Embed ``transcript`` in the fixed JSON-only analysis instructions."""

    shape = json.dumps(_ANALYSIS_SHAPE, ensure_ascii=False, indent=2)
    rules = "\n".join(_ANALYSIS_RULES)
    return (
        "Você é um avaliador de ligações comerciais. Leia a transcrição abaixo e "
        "devolva um único objeto JSON com exatamente estas chaves:\n\n"
        f"{shape}\n\n"
        f"Regras:\n{rules}\n\n"
        f"Transcrição:\n{transcript.strip()}"
    )


__all__ = ["TRANSCRIPTION_PROMPT", "build_analysis_prompt"]
