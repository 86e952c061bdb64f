# core/question_bank.py
"""
Fallback clarification questions, picked from the chapters of the current
candidates when the model asks for more information without saying what.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from model.attempt import NextQuestion, QuestionOption
from model.registry import RegistryEntry
from util.types import QuestionOptionDict, QuestionType


@dataclass(frozen=True)
class BankQuestion:
    id: str
    label: str
    type: QuestionType
    priority: int  # lower asks first
    options: Tuple[QuestionOptionDict, ...] = ()

    def to_next_question(self) -> NextQuestion:
        return NextQuestion(
            id=self.id,
            label=self.label,
            type=self.type,
            options=[QuestionOption(**o) for o in self.options],
            required=True,
        )


def _opts(*pairs: Tuple[str, str]) -> Tuple[QuestionOptionDict, ...]:
    return tuple(QuestionOptionDict(value=v, label=l) for v, l in pairs)


TEXTILE = (
    BankQuestion(
        "q_textile_composition",
        "What is the main textile material (more than 50% by weight)?",
        "select",
        1,
        _opts(
            ("cotton", "Cotton"),
            ("polyester", "Polyester"),
            ("wool", "Wool"),
            ("silk", "Silk"),
            ("linen", "Linen"),
            ("other_synthetic", "Other synthetic (nylon, acrylic)"),
            ("blend", "Balanced blend"),
        ),
    ),
    BankQuestion(
        "q_textile_construction",
        "How is the fabric made?",
        "select",
        2,
        _opts(
            ("knitted", "Knitted (jersey, crochet)"),
            ("woven", "Woven (warp and weft)"),
            ("nonwoven", "Non-woven (felt)"),
            ("lace", "Lace or embroidery"),
        ),
    ),
    BankQuestion(
        "q_textile_usage",
        "What is the product mainly used for?",
        "select",
        3,
        _opts(
            ("outerwear", "Outerwear (jacket, trousers)"),
            ("underwear", "Underwear or lingerie"),
            ("accessory", "Accessory (scarf, tie)"),
            ("household", "Household linen"),
            ("technical", "Technical or industrial use"),
        ),
    ),
)

MACHINE = (
    BankQuestion("q_machine_function", "What is the machine's main function?", "text", 1),
    BankQuestion(
        "q_machine_type",
        "What kind of machine is it?",
        "select",
        2,
        _opts(
            ("production", "Industrial production machine"),
            ("office", "Office machine"),
            ("household", "Household appliance"),
            ("agricultural", "Agricultural machine"),
            ("construction", "Construction machine"),
        ),
    ),
    BankQuestion("q_machine_electric", "Does the machine run mainly on electricity?", "yesno", 3),
    BankQuestion(
        "q_machine_autonomous",
        "Does the machine work on its own or is it part of a larger unit?",
        "select",
        4,
        _opts(
            ("standalone", "Works on its own"),
            ("part", "Part of a larger machine"),
            ("accessory", "Interchangeable accessory"),
        ),
    ),
)

FOOD = (
    BankQuestion(
        "q_food_state",
        "In what state is the food product?",
        "select",
        1,
        _opts(
            ("live", "Live"),
            ("fresh", "Fresh or chilled"),
            ("frozen", "Frozen"),
            ("dried", "Dried"),
            ("preserved", "Preserved or prepared"),
        ),
    ),
    BankQuestion(
        "q_food_preparation",
        "Does the product contain added sugar, flavouring or additives?",
        "yesno",
        2,
    ),
    BankQuestion(
        "q_food_origin",
        "What is the origin of the product?",
        "select",
        3,
        _opts(("animal", "Animal"), ("vegetable", "Vegetable"), ("mixed", "Mixed")),
    ),
)

CHEMICAL = (
    BankQuestion(
        "q_chemical_purity",
        "Is the chemical a pure compound or a mixture?",
        "select",
        1,
        _opts(
            ("pure", "Separate chemically defined compound"),
            ("mixture", "Mixture or preparation"),
            ("technical", "Technical grade"),
        ),
    ),
    BankQuestion(
        "q_chemical_usage",
        "What is the intended use?",
        "select",
        2,
        _opts(
            ("industrial", "Industrial"),
            ("pharmaceutical", "Pharmaceutical or medical"),
            ("cosmetic", "Cosmetic"),
            ("agricultural", "Agricultural (fertiliser, pesticide)"),
            ("food", "Food additive"),
            ("household", "Household"),
        ),
    ),
)

METAL = (
    BankQuestion(
        "q_metal_type",
        "What is the main metal?",
        "select",
        1,
        _opts(
            ("iron_steel", "Iron or steel"),
            ("stainless", "Stainless steel"),
            ("aluminium", "Aluminium"),
            ("copper", "Copper or its alloys"),
            ("zinc", "Zinc"),
            ("precious", "Precious metal"),
        ),
    ),
    BankQuestion(
        "q_metal_form",
        "In what form is the metal product presented?",
        "select",
        2,
        _opts(
            ("raw", "Unwrought (ingot, billet)"),
            ("semi", "Semi-finished (sheet, wire, tube)"),
            ("article", "Finished article"),
            ("scrap", "Waste or scrap"),
        ),
    ),
)

VEHICLE = (
    BankQuestion(
        "q_vehicle_type",
        "What type of vehicle is it?",
        "select",
        1,
        _opts(
            ("car", "Passenger car"),
            ("utility", "Goods vehicle or truck"),
            ("motorcycle", "Motorcycle or scooter"),
            ("bicycle", "Bicycle"),
            ("trailer", "Trailer"),
            ("tractor", "Tractor"),
        ),
    ),
    BankQuestion(
        "q_vehicle_capacity",
        "What is the engine capacity?",
        "select",
        2,
        _opts(
            ("lt_1000", "Under 1000 cc"),
            ("1000_1500", "1000 to 1500 cc"),
            ("1500_3000", "1500 to 3000 cc"),
            ("gt_3000", "Over 3000 cc"),
            ("electric", "Electric motor"),
            ("none", "No engine"),
        ),
    ),
)

GENERAL = (
    BankQuestion(
        "q_general_description",
        "Describe the product in detail (material, function, composition).",
        "text",
        10,
    ),
    BankQuestion("q_general_usage", "What is the product's intended main use?", "text", 11),
    BankQuestion("q_general_material", "What material(s) is the product made of?", "text", 12),
)


def _chapter_map() -> Dict[str, Tuple[BankQuestion, ...]]:
    groups: Sequence[Tuple[Iterable[int], Tuple[BankQuestion, ...]]] = (
        (range(50, 64), TEXTILE),
        ((84, 85), MACHINE),
        ((1, 2, 3, 4, 7, 8, 9, 10, 11, 12, 16, 17, 18, 19, 20, 21), FOOD),
        ((28, 29, 30, 31, 32, 33, 34, 35, 38), CHEMICAL),
        ((72, 73, 74, 75, 76, 78, 79, 80, 81, 82, 83), METAL),
        ((87,), VEHICLE),
    )
    out: Dict[str, Tuple[BankQuestion, ...]] = {}
    for chapters, questions in groups:
        for ch in chapters:
            out[f"{ch:02d}"] = questions
    return out


CHAPTER_QUESTIONS: Mapping[str, Tuple[BankQuestion, ...]] = _chapter_map()

_BY_ID: Dict[str, BankQuestion] = {
    q.id: q
    for group in (TEXTILE, MACHINE, FOOD, CHEMICAL, METAL, VEHICLE, GENERAL)
    for q in group
}


def question_label(question_id: str) -> str:
    """Human label for an answered question id, or the id itself when unknown."""
    q = _BY_ID.get(question_id)
    return q.label if q else question_id


def select_question(
    candidates: Sequence[RegistryEntry],
    answers: Mapping[str, str],
    material_composition: Sequence[str] = (),
) -> Optional[NextQuestion]:
    pool: List[BankQuestion] = []
    seen = set()
    for entry in candidates:
        for q in CHAPTER_QUESTIONS.get(entry.chapter2, ()):
            if q.id not in seen:
                seen.add(q.id)
                pool.append(q)
    if not pool:
        pool = list(GENERAL)

    open_questions = [
        q
        for q in pool
        if not answers.get(q.id)
        and not ("composition" in q.id and material_composition)
    ]
    if not open_questions:
        return None
    open_questions.sort(key=lambda q: q.priority)
    return open_questions[0].to_next_question()
