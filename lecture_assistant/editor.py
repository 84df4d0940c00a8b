"""Editable question state: seeding from generated questions, edits, export.

Items are immutable; every edit builds a new record with
``dataclasses.replace`` and swaps it into the editor's list.  All variant
dispatch goes through ``isinstance`` chains that end in
``_unknown_variant`` so a new question type cannot slip through unhandled.
"""
from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable, Iterable, Iterator
from dataclasses import replace
from typing import NoReturn

from lecture_assistant.errors import InvalidEdit, NothingSelected, QuestionNotFound
from lecture_assistant.models import (
    MAX_OPTIONS,
    EditableFillInTheBlank,
    EditableMultipleChoice,
    EditableOption,
    EditableQuestionItem,
    EditableSingleChoice,
    FillInTheBlankQuestion,
    GeneratedQuestion,
    MultipleChoiceQuestion,
    SingleChoiceQuestion,
)

_log = logging.getLogger("lecture_assistant.editor")

EXPORT_FILENAME = "test_questions.json"
EXPORT_MEDIA_TYPE = "application/json"

MIN_EDIT_OPTIONS = 2
MAX_EDIT_OPTIONS = MAX_OPTIONS
MAX_OPTIONS_NOTICE = f"At most {MAX_EDIT_OPTIONS} answer options are allowed."
MIN_OPTIONS_NOTICE = f"At least {MIN_EDIT_OPTIONS} answer options are required."

_COMMON_FIELDS = {"question_text", "selected"}
_FIELDS = {
    EditableFillInTheBlank: _COMMON_FIELDS | {"correct_answer"},
    EditableSingleChoice: _COMMON_FIELDS | {"options", "correct_answer"},
    EditableMultipleChoice: _COMMON_FIELDS | {"options", "correct_answers"},
}


def new_id() -> str:
    return str(uuid.uuid4())


def _unknown_variant(obj) -> NoReturn:
    raise TypeError(f"unhandled question variant: {type(obj).__name__}")


# ── Conversions ─────────────────────────────────────────────────────────

def to_editable(question: GeneratedQuestion, id_factory: Callable[[], str] = new_id) -> EditableQuestionItem:
    if isinstance(question, FillInTheBlankQuestion):
        return EditableFillInTheBlank(
            id=id_factory(),
            original=question,
            edited_question_text=question.question_text,
            edited_correct_answer=question.correct_answer,
        )
    if isinstance(question, SingleChoiceQuestion):
        return EditableSingleChoice(
            id=id_factory(),
            original=question,
            edited_question_text=question.question_text,
            edited_options=tuple(EditableOption(id_factory(), text) for text in question.options),
            edited_correct_answer=question.correct_answer,
        )
    if isinstance(question, MultipleChoiceQuestion):
        return EditableMultipleChoice(
            id=id_factory(),
            original=question,
            edited_question_text=question.question_text,
            edited_options=tuple(EditableOption(id_factory(), text) for text in question.options),
            edited_correct_answers=tuple(question.correct_answers),
        )
    _unknown_variant(question)


def to_generated(item: EditableQuestionItem) -> GeneratedQuestion:
    """Canonical question for an edited item, editor-only fields dropped."""
    if isinstance(item, EditableFillInTheBlank):
        return FillInTheBlankQuestion(item.edited_question_text, item.edited_correct_answer)
    if isinstance(item, EditableSingleChoice):
        return SingleChoiceQuestion(
            item.edited_question_text,
            tuple(o.text for o in item.edited_options),
            item.edited_correct_answer,
        )
    if isinstance(item, EditableMultipleChoice):
        return MultipleChoiceQuestion(
            item.edited_question_text,
            tuple(o.text for o in item.edited_options),
            tuple(item.edited_correct_answers),
        )
    _unknown_variant(item)


def item_to_dict(item: EditableQuestionItem) -> dict:
    d = {
        "id": item.id,
        "type": item.type,
        "selected": item.selected,
        "question_text": item.edited_question_text,
        "original": item.original.to_dict(),
    }
    if isinstance(item, EditableFillInTheBlank):
        d["correct_answer"] = item.edited_correct_answer
    elif isinstance(item, EditableSingleChoice):
        d["options"] = [o.to_dict() for o in item.edited_options]
        d["correct_answer"] = item.edited_correct_answer
    elif isinstance(item, EditableMultipleChoice):
        d["options"] = [o.to_dict() for o in item.edited_options]
        d["correct_answers"] = list(item.edited_correct_answers)
    else:
        _unknown_variant(item)
    return d


# ── Pure updates ────────────────────────────────────────────────────────

def _coerce_options(value) -> tuple[EditableOption, ...]:
    options = []
    for entry in value:
        if isinstance(entry, EditableOption):
            options.append(entry)
        elif isinstance(entry, dict):
            options.append(EditableOption(str(entry.get("id") or new_id()), str(entry.get("text", ""))))
        elif isinstance(entry, str):
            options.append(EditableOption(new_id(), entry))
        else:
            raise InvalidEdit(f"Invalid option entry: {entry!r}")
    if not MIN_EDIT_OPTIONS <= len(options) <= MAX_EDIT_OPTIONS:
        raise InvalidEdit(
            f"Questions need between {MIN_EDIT_OPTIONS} and {MAX_EDIT_OPTIONS} options "
            f"(got {len(options)})."
        )
    if len({o.id for o in options}) != len(options):
        raise InvalidEdit("Option ids must be unique.")
    return tuple(options)


def _renames(old: tuple[EditableOption, ...], new: tuple[EditableOption, ...]) -> dict[str, str]:
    """Map old option text to new text for options whose id survived."""
    old_text = {o.id: o.text for o in old}
    return {
        old_text[o.id]: o.text
        for o in new
        if o.id in old_text and old_text[o.id] != o.text
    }


def apply_update(item: EditableQuestionItem, **changes) -> EditableQuestionItem:
    """Return a copy of *item* with *changes* applied.

    Renaming an option that is a recorded correct answer renames the answer
    too; an answer whose option disappeared falls back to the first option
    (single choice) or is dropped (multiple choice).  Explicit answers in
    *changes* win over both.
    """
    allowed = _FIELDS.get(type(item))
    if allowed is None:
        _unknown_variant(item)
    unknown = set(changes) - allowed
    if unknown:
        raise InvalidEdit(
            f"Cannot edit {', '.join(sorted(unknown))} on a {item.type} question.",
            question_id=item.id,
        )

    updates: dict = {}
    if "question_text" in changes:
        updates["edited_question_text"] = str(changes["question_text"])
    if "selected" in changes:
        updates["selected"] = bool(changes["selected"])

    if isinstance(item, EditableFillInTheBlank):
        if "correct_answer" in changes:
            updates["edited_correct_answer"] = str(changes["correct_answer"])
        return replace(item, **updates)

    options = item.edited_options
    if "options" in changes:
        options = _coerce_options(changes["options"])
        updates["edited_options"] = options
    renames = _renames(item.edited_options, options)
    texts = [o.text for o in options]

    if isinstance(item, EditableSingleChoice):
        answer = renames.get(item.edited_correct_answer, item.edited_correct_answer)
        if answer not in texts:
            answer = texts[0]
        if "correct_answer" in changes:
            answer = str(changes["correct_answer"])
            if answer not in texts:
                raise InvalidEdit(f"Correct answer {answer!r} is not one of the options.", question_id=item.id)
        updates["edited_correct_answer"] = answer
        return replace(item, **updates)

    if isinstance(item, EditableMultipleChoice):
        answers = [renames.get(a, a) for a in item.edited_correct_answers]
        answers = [a for a in answers if a in texts]
        if "correct_answers" in changes:
            answers = [str(a) for a in changes["correct_answers"]]
            missing = [a for a in answers if a not in texts]
            if missing:
                raise InvalidEdit(f"Correct answers {missing!r} are not among the options.", question_id=item.id)
        updates["edited_correct_answers"] = tuple(dict.fromkeys(answers))
        return replace(item, **updates)

    _unknown_variant(item)


# ── Editor ──────────────────────────────────────────────────────────────

class QuestionEditor:
    """Ordered, id-keyed collection of editable questions."""

    def __init__(self, items: Iterable[EditableQuestionItem] = ()):
        self._items: list[EditableQuestionItem] = []
        seen: set[str] = set()
        for item in items:
            if item.id in seen:
                raise ValueError(f"duplicate question id: {item.id}")
            seen.add(item.id)
            self._items.append(item)

    @classmethod
    def from_generated(
        cls,
        questions: Iterable[GeneratedQuestion],
        id_factory: Callable[[], str] = new_id,
    ) -> QuestionEditor:
        return cls(to_editable(q, id_factory) for q in questions)

    @property
    def items(self) -> tuple[EditableQuestionItem, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[EditableQuestionItem]:
        return iter(tuple(self._items))

    def _index(self, question_id: str) -> int:
        for i, item in enumerate(self._items):
            if item.id == question_id:
                return i
        raise QuestionNotFound(f"No question with id '{question_id}'.", question_id=question_id)

    def get(self, question_id: str) -> EditableQuestionItem:
        return self._items[self._index(question_id)]

    def _options_item(self, question_id: str) -> EditableSingleChoice | EditableMultipleChoice:
        item = self.get(question_id)
        if not isinstance(item, (EditableSingleChoice, EditableMultipleChoice)):
            raise InvalidEdit(f"{item.type} questions have no answer options.", question_id=question_id)
        return item

    def update_field(self, question_id: str, **changes) -> EditableQuestionItem:
        i = self._index(question_id)
        updated = apply_update(self._items[i], **changes)
        self._items[i] = updated
        return updated

    def rename_option(self, question_id: str, option_id: str, text: str) -> EditableQuestionItem:
        item = self._options_item(question_id)
        if option_id not in {o.id for o in item.edited_options}:
            raise InvalidEdit(f"No option with id '{option_id}'.", question_id=question_id)
        options = [
            EditableOption(o.id, text) if o.id == option_id else o
            for o in item.edited_options
        ]
        return self.update_field(question_id, options=options)

    def set_correct_answer(self, question_id: str, text: str) -> EditableQuestionItem:
        item = self.get(question_id)
        if isinstance(item, EditableMultipleChoice):
            raise InvalidEdit("Use toggle_correct_answer for multiple-choice questions.", question_id=question_id)
        return self.update_field(question_id, correct_answer=text)

    def toggle_correct_answer(self, question_id: str, text: str, checked: bool) -> EditableQuestionItem:
        item = self.get(question_id)
        if not isinstance(item, EditableMultipleChoice):
            raise InvalidEdit("Only multiple-choice questions have several answers.", question_id=question_id)
        answers = [a for a in item.edited_correct_answers if a != text]
        if checked:
            answers.append(text)
        return self.update_field(question_id, correct_answers=answers)

    def add_option(self, question_id: str, text: str | None = None) -> str | None:
        """Append an option; returns a notice instead when the item is full."""
        item = self._options_item(question_id)
        count = len(item.edited_options)
        if count >= MAX_EDIT_OPTIONS:
            _log.info("Option limit reached for %s", question_id)
            return MAX_OPTIONS_NOTICE
        option = EditableOption(new_id(), text if text is not None else f"New option {count + 1}")
        self.update_field(question_id, options=[*item.edited_options, option])
        return None

    def remove_option(self, question_id: str, option_id: str) -> str | None:
        """Remove an option; returns a notice instead when too few would remain."""
        item = self._options_item(question_id)
        remaining = [o for o in item.edited_options if o.id != option_id]
        if len(remaining) == len(item.edited_options):
            raise InvalidEdit(f"No option with id '{option_id}'.", question_id=question_id)
        if len(remaining) < MIN_EDIT_OPTIONS:
            _log.info("Option minimum reached for %s", question_id)
            return MIN_OPTIONS_NOTICE
        self.update_field(question_id, options=remaining)
        return None

    def toggle_selected(self, question_id: str, selected: bool) -> EditableQuestionItem:
        return self.update_field(question_id, selected=selected)

    def delete(self, question_id: str) -> None:
        del self._items[self._index(question_id)]

    def selected_questions(self) -> list[GeneratedQuestion]:
        return [to_generated(item) for item in self._items if item.selected]

    def export_selected(self) -> bytes:
        questions = self.selected_questions()
        if not questions:
            raise NothingSelected("Select at least one question to export.")
        for item in self._items:
            if item.selected and isinstance(item, EditableMultipleChoice) and not item.edited_correct_answers:
                raise InvalidEdit(
                    f"Question '{item.edited_question_text}' needs at least one correct answer.",
                    stage="export", question_id=item.id,
                )
        _log.info("Exporting %d of %d question(s)", len(questions), len(self._items))
        payload = {"questions": [q.to_dict() for q in questions]}
        return json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")

    def to_dict(self) -> list[dict]:
        return [item_to_dict(item) for item in self._items]
