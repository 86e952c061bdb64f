# core/prompt_builder.py
from typing import List, Mapping, Sequence

from config.settings import settings
from core.entities import PromptPair, RetrievalBundle
from core.question_bank import question_label
from model.api import ClassificationContext
from model.case import ProductCase
from model.registry import DocumentRef
from util import functions

FORCE_NEED_INFO = (
    "NO CANDIDATES were found in the registry for this product. You MUST answer with "
    'status "NEED_INFO", recommended_code null, and one next_question that would let '
    "the registry search find the product. Do not propose any code."
)


def _candidate_lines(bundle: RetrievalBundle) -> List[str]:
    lines: List[str] = []
    for i, c in enumerate(bundle.candidates, start=1):
        restrictions = "; ".join(c.restrictions) if c.restrictions else "none"
        lines.append(
            f"{i:02d}. {c.code10} | ch.{c.chapter2} | {c.label} | unit: {c.unit or '-'}"
            f" | restrictions: {restrictions}"
        )
    return lines


def _knowledge_lines(bundle: RetrievalBundle, limit: int) -> List[str]:
    return [
        f"[{ch.source}] doc_id={ch.docId} ref={ch.ref}\n"
        f"{functions.clip_words(ch.text, max_words=120)}"
        for ch in bundle.knowledge[:limit]
    ]


def _precedent_lines(bundle: RetrievalBundle) -> List[str]:
    return [
        f"- {p.description} -> {p.code} (reliability {p.reliability:.2f}"
        + (f", doc_id={p.docId}" if p.docId else "")
        + ")"
        for p in bundle.precedents
    ]


def build_instruction_block(
    bundle: RetrievalBundle, chunk_limit: int = settings.PROMPT_KNOWLEDGE_CHUNKS
) -> str:
    """
    System-side text: the rules, then everything the model is allowed to use.
    Sections keep a fixed order so the same bundle always yields the same text.
    """
    parts: List[str] = [settings.CLASSIFY_SYSTEM_PROMPT.rstrip()]

    if bundle.candidates:
        parts.append("CANDIDATES (recommend ONLY one of these codes):\n" + "\n".join(_candidate_lines(bundle)))
    else:
        parts.append("CANDIDATES: (empty)\n" + FORCE_NEED_INFO)

    knowledge = _knowledge_lines(bundle, chunk_limit)
    parts.append(
        "KNOWLEDGE:\n" + ("\n\n".join(knowledge) if knowledge else "(no excerpts retrieved)")
    )

    precedents = _precedent_lines(bundle)
    parts.append(
        "PRECEDENTS:\n" + ("\n".join(precedents) if precedents else "(none)")
    )

    parts.append(settings.RESPONSE_FORMAT_PROMPT.rstrip())
    return "\n\n".join(parts)


def build_context_block(
    case: ProductCase,
    document_refs: Sequence[DocumentRef],
    answers: Mapping[str, str],
    context: ClassificationContext,
) -> str:
    description = context.productDescription or case.productDescription or "not specified"
    composition = ", ".join(context.materialComposition) or "not specified"
    lines = [
        f"PRODUCT: {case.productName}",
        f"DESCRIPTION: {description}",
        f"COMPOSITION: {composition}",
        f"USAGE: {context.usage or 'not specified'}",
        f"OPERATION: {case.direction.value}",
        f"ORIGIN COUNTRY: {case.originCountry}",
    ]
    if document_refs:
        lines.append("DOCUMENTS:")
        lines.extend(f"- {d.id} ({d.type.value})" for d in document_refs)
    else:
        lines.append("DOCUMENTS: none attached")
    if answers:
        lines.append("CLARIFICATIONS:")
        # sorted so the block does not depend on answer arrival order
        for qid in sorted(answers):
            lines.append(f"- {question_label(qid)} [{qid}]: {answers[qid]}")
    lines.append("\nReturn JSON only.")
    return "\n".join(lines)


def build_prompts(
    case: ProductCase,
    bundle: RetrievalBundle,
    document_refs: Sequence[DocumentRef],
    answers: Mapping[str, str],
    context: ClassificationContext,
) -> PromptPair:
    return PromptPair(
        system=build_instruction_block(bundle),
        user=build_context_block(case, document_refs, answers, context),
    )
