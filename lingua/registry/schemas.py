"""
Modal schema definitions.

Each interaction type is declared statically here: the question_data shape
the content synthesizer must produce, the UI component it binds to, and how
answers are marked. The same descriptors drive synthesizer response schemas
and payload validation.
"""

from __future__ import annotations

from .models import (
    FieldDescriptor,
    FieldType,
    GenerationDefaults,
    MarkingMode,
    ModalSchemaDefinition,
    SchemaGeneration,
    SchemaMarking,
    Skill,
)

GAP_MARKER = "___"

# =============================================================================
# Shared prompt fragments
# =============================================================================

_PROMPT_HEADER = """You are an expert {target_language} teacher writing practice material for a learner whose native language is {source_language}.

Module: {module_title}
Submodule: {submodule_title}
Pedagogical focus: {pedagogical_focus}
Difficulty: {difficulty}
Grammar focus: {grammar_focus}
Themes: {themes}
Use vocabulary from this pool where natural: {vocabulary}
"""

_PROMPT_FOOTER = """
Return ONLY a JSON object with exactly these fields:
{field_shape}

The following values are fixed and must be used verbatim:
{forced_fields}
"""

_KEY_VOCABULARY = FieldDescriptor(
    name="key_vocabulary",
    type=FieldType.STRING_LIST,
    required=False,
    max_items=12,
    description="Important target-language words used in the item",
)

_EXPLANATION = FieldDescriptor(
    name="explanation",
    type=FieldType.STRING,
    required=False,
    description="Short explanation in the source language",
)

# =============================================================================
# Reading / Writing
# =============================================================================

MULTIPLE_CHOICE = ModalSchemaDefinition(
    id="multiple-choice",
    skill=Skill.READING,
    title_en="Multiple Choice",
    ui_component="MultipleChoiceQuestion",
    descriptors=(
        FieldDescriptor(name="question", type=FieldType.STRING, description="Question text"),
        FieldDescriptor(
            name="options",
            type=FieldType.STRING_LIST,
            min_items=2,
            max_items=6,
            description="Answer options in the target language",
        ),
        FieldDescriptor(
            name="correct_option_index",
            type=FieldType.INTEGER,
            description="Zero-based index of the correct option",
        ),
        _EXPLANATION,
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write one multiple-choice question in {target_language} with four plausible options.
Exactly one option is correct. Distractors must be wrong for a clear grammatical or lexical reason.
"""
        + _PROMPT_FOOTER,
        defaults=GenerationDefaults(difficulty="beginner"),
    ),
    marking=SchemaMarking(mode=MarkingMode.CHOICE),
)

TRUE_FALSE = ModalSchemaDefinition(
    id="true-false",
    skill=Skill.READING,
    title_en="True or False",
    ui_component="TrueFalseQuestion",
    descriptors=(
        FieldDescriptor(name="statement", type=FieldType.STRING, description="Statement to judge"),
        FieldDescriptor(
            name="context",
            type=FieldType.STRING,
            required=False,
            description="Short text the statement refers to",
        ),
        FieldDescriptor(name="is_correct_answer_true", type=FieldType.BOOLEAN),
        FieldDescriptor(
            name="true_label",
            type=FieldType.STRING,
            required=False,
            description="Target-language label for true, e.g. Richtig",
        ),
        FieldDescriptor(
            name="false_label",
            type=FieldType.STRING,
            required=False,
            description="Target-language label for false, e.g. Falsch",
        ),
        _EXPLANATION,
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write a short {target_language} context and one statement about it that is either true or false.
Give the {target_language} words for "true" and "false" as labels.
"""
        + _PROMPT_FOOTER,
    ),
    marking=SchemaMarking(mode=MarkingMode.BOOLEAN),
)

FILL_IN_GAP = ModalSchemaDefinition(
    id="fill-in-gap",
    skill=Skill.WRITING,
    title_en="Fill in the Gap",
    ui_component="FillInGapQuestion",
    descriptors=(
        FieldDescriptor(
            name="sentence_template",
            type=FieldType.STRING,
            description=f"Sentence with the gap written as {GAP_MARKER}",
        ),
        FieldDescriptor(name="correct_answer", type=FieldType.STRING),
        FieldDescriptor(
            name="acceptable_answers",
            type=FieldType.STRING_LIST,
            required=False,
            max_items=5,
            description="Other spellings or forms that are also correct",
        ),
        FieldDescriptor(name="hint", type=FieldType.STRING, required=False),
        FieldDescriptor(
            name="translation",
            type=FieldType.STRING,
            required=False,
            description="Source-language translation of the full sentence",
        ),
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write one {target_language} sentence with a single word or short phrase removed.
Mark the gap with ___ (three underscores) exactly once.
"""
        + _PROMPT_FOOTER,
    ),
    marking=SchemaMarking(mode=MarkingMode.EXACT),
)

READING_COMPREHENSION = ModalSchemaDefinition(
    id="reading-comprehension",
    skill=Skill.READING,
    title_en="Reading Comprehension",
    ui_component="ReadingComprehension",
    descriptors=(
        FieldDescriptor(name="title", type=FieldType.STRING, required=False),
        FieldDescriptor(name="passage", type=FieldType.STRING, description="Reading passage"),
        FieldDescriptor(
            name="items",
            type=FieldType.OBJECT_LIST,
            min_items=2,
            max_items=5,
            description="Independently scored questions about the passage",
            item_fields=(
                FieldDescriptor(name="question", type=FieldType.STRING),
                FieldDescriptor(name="correct_answer", type=FieldType.STRING),
                FieldDescriptor(
                    name="acceptable_answers",
                    type=FieldType.STRING_LIST,
                    required=False,
                ),
                FieldDescriptor(
                    name="points",
                    type=FieldType.INTEGER,
                    required=False,
                    description="Weight of this item (default 1)",
                ),
            ),
        ),
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write a short {target_language} passage followed by 2 to 4 questions about it.
Every answer must be a word or short phrase that appears in the passage.
"""
        + _PROMPT_FOOTER,
        defaults=GenerationDefaults(difficulty="intermediate"),
    ),
    marking=SchemaMarking(mode=MarkingMode.MULTI_ITEM),
)

SENTENCE_TRANSLATION = ModalSchemaDefinition(
    id="sentence-translation",
    skill=Skill.WRITING,
    title_en="Sentence Translation",
    ui_component="SentenceTranslation",
    descriptors=(
        FieldDescriptor(
            name="source_sentence",
            type=FieldType.STRING,
            description="Sentence in the source language",
        ),
        FieldDescriptor(
            name="reference_translation",
            type=FieldType.STRING,
            description="Natural translation into the target language",
        ),
        FieldDescriptor(name="hint", type=FieldType.STRING, required=False),
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write one {source_language} sentence for the learner to translate into {target_language},
together with a natural reference translation.
"""
        + _PROMPT_FOOTER,
    ),
    marking=SchemaMarking(
        mode=MarkingMode.JUDGED,
        pass_threshold=70,
        reference_field="reference_translation",
        prompt_template="""You are grading a {target_language} translation written by a learner whose native language is {source_language}.

Original sentence: {source_sentence}
Reference translation: {reference_translation}
Learner translation: {user_answer}

Accept any translation that is grammatical and preserves the meaning, even if it differs from the reference.
Return JSON with: is_correct (bool), score (0-100), feedback (in {source_language}), correct_answer.""",
    ),
)

# =============================================================================
# Speaking
# =============================================================================

SPEAKING_CONVERSATION = ModalSchemaDefinition(
    id="speaking-conversation",
    skill=Skill.SPEAKING,
    title_en="Conversation Practice",
    ui_component="SpeakingConversation",
    descriptors=(
        FieldDescriptor(
            name="questions",
            type=FieldType.STRING_LIST,
            min_items=3,
            max_items=3,
            description="Three conversational prompts in the target language",
        ),
        FieldDescriptor(
            name="sample_answer",
            type=FieldType.STRING,
            required=False,
            description="A model answer covering all three prompts",
        ),
        FieldDescriptor(name="hint", type=FieldType.STRING),
        FieldDescriptor(name="show_hint", type=FieldType.BOOLEAN),
        _KEY_VOCABULARY,
    ),
    generation=SchemaGeneration(
        prompt_template=_PROMPT_HEADER
        + """
Write exactly three short, connected conversational questions in {target_language} that the learner answers aloud.
Add a hint in {source_language} and a sample answer in {target_language}.
"""
        + _PROMPT_FOOTER,
    ),
    marking=SchemaMarking(
        mode=MarkingMode.JUDGED,
        pass_threshold=60,
        reference_field="sample_answer",
        prompt_template="""You are a friendly {target_language} conversation partner assessing a learner whose native language is {source_language}.

Questions asked: {questions}
Learner answer (transcribed): {user_answer}

Judge whether the answer addresses the questions with understandable {target_language}.
Return JSON with: is_correct (bool), score (0-100), feedback (in {source_language}), correct_answer.""",
    ),
)


BUILTIN_SCHEMAS: tuple[ModalSchemaDefinition, ...] = (
    MULTIPLE_CHOICE,
    TRUE_FALSE,
    FILL_IN_GAP,
    READING_COMPREHENSION,
    SENTENCE_TRANSLATION,
    SPEAKING_CONVERSATION,
)
