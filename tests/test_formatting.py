"""
Tests for embedding text preparation.
"""

from careermatch.formatting import (
    clean_text,
    content_hash,
    format_entity_text,
    format_job_text,
    format_profile_text,
    has_enough_content,
)
from careermatch.models import Job, Profile


class TestProfileText:
    """Test resume flattening."""

    def test_sections_present(self, sample_resume):
        text = format_profile_text(sample_resume)

        assert "Current Role: Senior Software Engineer" in text
        assert "Professional Summary: Backend engineer" in text
        assert "Skills: Python, SQL, Docker" in text
        assert "Senior Software Engineer at Acme Corp" in text
        assert "Education: BSc in Computer Science" in text
        assert "Certifications: AWS Developer" in text

    def test_only_first_three_bullets(self, sample_resume):
        text = format_profile_text(sample_resume)
        assert "Mentored engineers" in text
        assert "Ran on-call rotation" not in text

    def test_project_technologies_deduplicated(self, sample_resume):
        text = format_profile_text(sample_resume)
        assert "Project Technologies: Python, Airflow, Flask" in text

    def test_non_string_values_are_stringified(self):
        data = {
            "skills": [{"category": "Years", "items": [5, "Python", None]}, 3.5],
            "experience": [{"position": "Engineer", "company": "Acme", "description": [2021, "Led migration"]}],
            "projects": [{"technologies": "Rust"}, {"technologies": [7]}],
        }
        text = format_profile_text(data)

        assert "Skills: 5, Python, 3.5" in text
        assert "2021. Led migration" in text
        assert "Project Technologies: Rust, 7" in text

    def test_empty_data(self):
        assert format_profile_text({}) == ""
        assert format_profile_text(None) == ""


class TestJobText:
    """Test job flattening."""

    def test_title_repeated_and_fields(self):
        job = Job(id=1, title="Data Engineer", company="Acme",
                  location="Remote", description="Build pipelines.")
        text = format_job_text(job)

        assert text.count("Data Engineer") == 2
        assert "Company: Acme" in text
        assert "Location: Remote" in text
        assert text.endswith("Build pipelines.")

    def test_long_description_truncated(self):
        job = Job(id=1, title="T", company="C", description="x" * 20000)
        text = format_job_text(job)
        assert len(text) < 9000
        assert text.endswith("...")

    def test_entity_dispatch(self, sample_resume):
        profile = Profile(id=1, user_id="u", data=sample_resume)
        job = Job(id=2, title="Data Engineer", company="Acme")
        assert format_entity_text(profile) == format_profile_text(sample_resume)
        assert format_entity_text(job) == format_job_text(job)


class TestHelpers:
    """Test cleaning, hashing and content checks."""

    def test_clean_text_collapses_whitespace(self):
        assert clean_text("  a \n\n b\tc  ") == "a b c"
        assert clean_text(None) == ""

    def test_clean_text_truncates(self):
        assert clean_text("abcdef", max_chars=3) == "abc..."

    def test_content_hash_is_stable(self):
        assert content_hash("hello") == content_hash("hello")
        assert content_hash("hello") != content_hash("hello!")

    def test_has_enough_content(self):
        assert not has_enough_content("   short   ", min_chars=10)
        assert has_enough_content("x" * 10, min_chars=10)
