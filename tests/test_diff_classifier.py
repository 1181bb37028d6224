"""
Tests for the block diff and the meaningfulness classifier.
"""

import pytest


OLD_PRO = "pro plan: $49/mo billed annually"
NEW_PRO = "pro plan: $59/mo billed annually"


class TestComputeDiff:
    """Tests for compute_diff()."""

    def test_equal_fingerprints_short_circuit(self):
        """Matching fingerprints mean no change even if the texts differ."""
        from pagewatch.diff import compute_diff

        digest = "a" * 64
        diff = compute_diff("old text here", "new text here", digest, digest)

        assert diff.has_changes is False
        assert diff.fingerprint_changed is False
        assert diff.segments == []

    def test_identical_text(self):
        from pagewatch.diff import compute_diff

        diff = compute_diff(OLD_PRO, OLD_PRO)

        assert diff.has_changes is False

    def test_changed_block_is_paired(self):
        from pagewatch.diff import compute_diff

        diff = compute_diff(OLD_PRO, NEW_PRO)

        assert diff.has_changes is True
        assert diff.fingerprint_changed is True
        assert len(diff.segments) == 1
        assert diff.segments[0].kind == "changed"
        assert diff.removed == [OLD_PRO]
        assert diff.added == [NEW_PRO]

    def test_added_block(self):
        from pagewatch.diff import compute_diff

        diff = compute_diff("pro plan $49", "pro plan $49. enterprise plan $199")

        assert diff.has_changes is True
        assert diff.removed == []
        assert diff.added == ["enterprise plan $199"]
        assert diff.segments[0].kind == "added"

    def test_tiny_change_is_ignored(self):
        """Changes confined to blocks of five characters or fewer carry no signal."""
        from pagewatch.diff import compute_diff

        diff = compute_diff("hello world. abc", "hello world. xyz")

        assert diff.has_changes is False
        assert diff.fingerprint_changed is True


class TestSummarizeDiff:
    """Tests for summarize_diff()."""

    def test_no_changes(self):
        from pagewatch.diff import DiffResult, summarize_diff

        assert summarize_diff(DiffResult(has_changes=False)) == "No changes detected"

    def test_changed_segment(self):
        from pagewatch.diff import compute_diff, summarize_diff

        summary = summarize_diff(compute_diff(OLD_PRO, NEW_PRO))

        assert summary == f'Changed: "{OLD_PRO}" → "{NEW_PRO}"'

    def test_overflow_line(self):
        from pagewatch.diff import ChangedSegment, DiffResult, summarize_diff

        segments = [ChangedSegment(new_text=f"added block {i}") for i in range(5)]
        summary = summarize_diff(DiffResult(has_changes=True, segments=segments))

        lines = summary.split("\n")
        assert len(lines) == 4
        assert lines[0] == 'Added: "added block 0"'
        assert lines[-1] == "...and 2 more changes"


class TestClassify:
    """Tests for classify()."""

    def test_price_change_is_high_severity(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff(OLD_PRO, NEW_PRO))

        assert result.is_meaningful is True
        assert result.severity == "high"
        assert result.reason_codes == ["pricing", "plan"]
        assert result.changed_items[0] == "Pricing updated: Pro:$49→$59"
        assert result.reason == "Pricing information changed"
        assert result.summary.startswith("Pricing updated: Pro:$49→$59")

    def test_new_plan_is_reported(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff("pro plan $49", "pro plan $49. enterprise plan $199"))

        assert result.severity == "high"
        assert result.changed_items == ["Plan added: Enterprise:$199"]

    def test_cta_change_is_medium(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff("start today with our tool", "get started today with our tool"))

        assert result.is_meaningful is True
        assert result.severity == "medium"
        assert result.reason_codes == ["cta"]
        assert result.changed_items == ['Call-to-action updated: "get started today with our tool"']

    def test_positioning_change(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff("a simple tool for analysts", "the fastest tool for analysts"))

        assert result.severity == "medium"
        assert result.reason_codes == ["positioning"]
        assert result.changed_items == ["Value proposition updated"]

    def test_noise_only_change_is_minor(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff("copyright acme 2023 edition", "copyright acme 2024 edition"))

        assert result.is_meaningful is False
        assert result.severity == "minor"
        assert result.reason_codes == ["noise_only"]

    def test_fingerprint_change_without_text_change_is_minor(self):
        from pagewatch.diff import classify, compute_diff

        result = classify(compute_diff("hello world. abc", "hello world. xyz"))

        assert result.is_meaningful is False
        assert result.severity == "minor"
        assert result.reason_codes == ["minor_change"]

    def test_no_change(self):
        from pagewatch.diff import DiffResult, classify

        result = classify(DiffResult(has_changes=False))

        assert result.is_meaningful is False
        assert result.severity is None
        assert result.summary == "No changes detected"

    def test_rejects_non_diff(self):
        from pagewatch.diff import classify
        from pagewatch.exceptions import ClassificationError

        with pytest.raises(ClassificationError):
            classify({"has_changes": True})

    def test_rejects_malformed_segment(self):
        from pagewatch.diff import ChangedSegment, DiffResult, classify
        from pagewatch.exceptions import ClassificationError

        diff = DiffResult(has_changes=True, segments=[ChangedSegment(old_text=None, new_text="x")])

        with pytest.raises(ClassificationError):
            classify(diff)


class TestPricePoints:
    """Tests for extract_price_points()."""

    def test_maps_plans_to_prices(self):
        from pagewatch.diff.classifier import extract_price_points

        points = extract_price_points("starter plan: $19/mo. pro plan - €49 per month. enterprise: contact sales")

        assert points == {"starter": "$19", "pro": "€49"}


class TestValidateSnapshotInput:
    """Tests for validate_snapshot_input()."""

    def test_accepts_valid_snapshot(self):
        from pagewatch.diff import fingerprint, validate_snapshot_input

        validate_snapshot_input("pro plan $49", fingerprint("pro plan $49"))

    @pytest.mark.parametrize("bad", ["abc", "", None, "G" * 64])
    def test_rejects_malformed_fingerprint(self, bad):
        from pagewatch.diff import validate_snapshot_input
        from pagewatch.exceptions import ClassificationError

        with pytest.raises(ClassificationError):
            validate_snapshot_input("pro plan $49", bad)

    def test_rejects_non_string_text(self):
        from pagewatch.diff import validate_snapshot_input
        from pagewatch.exceptions import ClassificationError

        with pytest.raises(ClassificationError):
            validate_snapshot_input(b"bytes", "a" * 64)
