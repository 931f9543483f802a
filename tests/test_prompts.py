"""Prompt template and builder tests."""

import pytest

from storyweaver.errors import ConfigError, PromptError
from storyweaver.generation import build_story_prompt, normalize_with_status
from storyweaver.generation.prompts import get_prompt_config, prompt_version
from storyweaver.utils import format_prompt, load_prompt


class TestPromptLoader:
    """Test YAML prompt loading."""

    def test_load_prompt_keys(self):
        config = load_prompt("generate_story")
        assert set(config) >= {"meta", "system", "user_template"}
        assert prompt_version(config) == "3.0"

    def test_missing_prompt(self, tmp_path):
        with pytest.raises(PromptError):
            load_prompt("nope", prompts_dir=tmp_path)

    def test_custom_prompts_dir(self, tmp_path):
        (tmp_path / "b.yaml").write_text("system: s\nuser_template: hi {name}\n", encoding="utf-8")
        assert format_prompt(load_prompt("b", tmp_path)["user_template"], name="Ann") == "hi Ann"

    @pytest.mark.parametrize("content", [
        "system: s\n",
        "- just\n- a list\n",
        "system: [unclosed\n",
        "system: s\nuser_template: 3\n",
    ])
    def test_invalid_template(self, tmp_path, content):
        (tmp_path / "bad.yaml").write_text(content, encoding="utf-8")
        with pytest.raises(PromptError):
            load_prompt("bad", tmp_path)

    def test_unknown_placeholder(self):
        with pytest.raises(PromptError):
            format_prompt("hi {name} from {city}", name="Ann")

    def test_prompt_error_is_config_error(self):
        assert issubclass(PromptError, ConfigError)


class TestBuildStoryPrompt:
    """Test story prompt construction."""

    def test_deterministic(self):
        first = build_story_prompt("russian", "beginner", "friendship")
        assert first == build_story_prompt("russian", "beginner", "friendship")

    def test_level_details(self):
        prompt = build_story_prompt("russian", "beginner", "friendship")
        assert "Russian" in prompt
        assert "friendship" in prompt
        assert "(A1)" in prompt
        assert "under 150 words" in prompt

        assert "under 500 words" in build_story_prompt("urdu", "advanced", "art")

    def test_schema_field_names(self):
        prompt = build_story_prompt("english", "intermediate", "travel")
        for name in ("story_text", "translation", "vocabulary", "part_of_speech", "exercises", "options"):
            assert name in prompt
        assert "Return ONLY the JSON" in prompt

    def test_system_and_user_joined(self):
        prompt = build_story_prompt("russian", "beginner", "cats")
        system, user = prompt.split("\n\n---\n\n")
        assert "language teacher" in system
        assert user.startswith("Create an engaging Russian story")

    def test_unknown_keys_rendered_verbatim(self):
        prompt = build_story_prompt("klingon", "expert", "honor")
        assert "Klingon" in prompt
        assert "expert (expert)" in prompt

    def test_example_shape_needs_no_repair(self):
        """The example embedded in the prompt normalizes without fallback."""
        prompt = build_story_prompt("russian", "beginner", "cats")
        example = prompt[prompt.index("Example shape:") + len("Example shape:"):]
        lesson, used_fallback = normalize_with_status(example, "russian", "cats")
        assert not used_fallback
        assert lesson.exercises[0].kind == "multiple_choice"

    def test_custom_prompt_config(self):
        config = {"system": "", "user_template": "{language_name}/{level_code}/{topic}"}
        assert build_story_prompt("urdu", "intermediate", "music", config) == "Urdu/A2-B1/music"

    def test_prompt_config_cached(self):
        assert get_prompt_config() is get_prompt_config()
