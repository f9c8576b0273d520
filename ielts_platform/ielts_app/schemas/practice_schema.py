"""Schemas for practice generation requests (camelCase on the wire)."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from ..services.prompt_templates import DIFFICULTY_BANDS, FILL_VARIANTS, VOICE_GENDERS

DIFFICULTIES = tuple(DIFFICULTY_BANDS)
VOICE_NAMES = tuple(VOICE_GENDERS)


class _Lenient(Schema):
    class Meta:
        unknown = EXCLUDE


class ReadingConfigSchema(_Lenient):
    paragraph_count = fields.Integer(data_key="paragraphCount", validate=validate.Range(min=3, max=10))
    word_count = fields.Integer(data_key="wordCount", validate=validate.Range(min=200, max=2000))
    use_word_count_mode = fields.Boolean(data_key="useWordCountMode", load_default=False)
    passage_preset = fields.String(data_key="passagePreset")
    fill_variant = fields.String(data_key="fillVariant", validate=validate.OneOf(FILL_VARIANTS))
    word_limit = fields.Integer(data_key="wordLimit", validate=validate.OneOf((1, 2, 3)))


class SpeakerSchema(_Lenient):
    gender = fields.String(validate=validate.OneOf(("male", "female")))
    accent = fields.String(validate=validate.Length(max=40))
    voice_name = fields.String(data_key="voiceName", validate=validate.OneOf(VOICE_NAMES))


class SpeakerConfigSchema(_Lenient):
    speaker1 = fields.Nested(SpeakerSchema)
    speaker2 = fields.Nested(SpeakerSchema)
    use_two_speakers = fields.Boolean(data_key="useTwoSpeakers", load_default=True)


class SpellingModeSchema(_Lenient):
    enabled = fields.Boolean(load_default=False)
    test_scenario = fields.String(
        data_key="testScenario",
        validate=validate.OneOf(("phone_call", "hotel_booking", "job_inquiry")),
    )
    spelling_difficulty = fields.String(data_key="spellingDifficulty", validate=validate.OneOf(("low", "high")))
    number_format = fields.String(
        data_key="numberFormat",
        validate=validate.OneOf(("phone_number", "date", "postcode")),
    )


class ListeningConfigSchema(_Lenient):
    duration_seconds = fields.Integer(data_key="durationSeconds", validate=validate.Range(min=30, max=900))
    word_count = fields.Integer(data_key="wordCount", validate=validate.Range(min=50, max=3000))
    use_word_count_mode = fields.Boolean(data_key="useWordCountMode", load_default=False)
    speaker_config = fields.Nested(SpeakerConfigSchema, data_key="speakerConfig")
    spelling_mode = fields.Nested(SpellingModeSchema, data_key="spellingMode")
    monologue_mode = fields.Boolean(data_key="monologueMode", load_default=False)


class WritingConfigSchema(_Lenient):
    task_type = fields.String(data_key="taskType", validate=validate.OneOf(("TASK_1", "TASK_2", "FULL_TEST")))
    task1_visual_type = fields.String(data_key="task1VisualType")
    task2_essay_type = fields.String(data_key="task2EssayType")


class GenerateRequestSchema(_Lenient):
    # module stays free-form so an unknown value reaches the service as "Invalid module".
    module = fields.String(required=True)
    question_type = fields.String(data_key="questionType", load_default=None)
    difficulty = fields.String(load_default="medium", validate=validate.OneOf(DIFFICULTIES))
    topic_preference = fields.String(data_key="topicPreference", load_default=None, allow_none=True)
    question_count = fields.Integer(data_key="questionCount", load_default=None, validate=validate.Range(min=1, max=40))
    time_minutes = fields.Integer(data_key="timeMinutes", load_default=None, validate=validate.Range(min=1, max=180))
    save_to_bank = fields.Boolean(data_key="saveToBank", load_default=False)
    reading_config = fields.Nested(ReadingConfigSchema, data_key="readingConfig", load_default=dict)
    listening_config = fields.Nested(ListeningConfigSchema, data_key="listeningConfig", load_default=dict)
    writing_config = fields.Nested(WritingConfigSchema, data_key="writingConfig", load_default=dict)
