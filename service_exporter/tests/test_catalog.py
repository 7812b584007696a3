"""
Unit tests for the metric catalog.
"""

from service_exporter.app.catalog import MetricDefinition, SonarMetric, list_supported_metrics


class TestMetricCatalog:
    """Test cases for the supported metric catalog."""

    def test_catalog_is_stable(self):
        """Repeated calls return the same identities."""
        assert list_supported_metrics() == list_supported_metrics()
        assert list_supported_metrics() is list_supported_metrics()

    def test_catalog_contains_core_metrics(self):
        """Catalog covers the core quality metrics."""
        keys = {metric.key for metric in list_supported_metrics()}
        assert keys == {
            "bugs",
            "vulnerabilities",
            "violations",
            "code_smells",
            "duplicated_lines_density",
            "sqale_index",
            "new_bugs",
            "new_vulnerabilities",
            "new_violations",
            "new_code_smells",
            "new_duplicated_lines_density",
            "new_security_rating",
            "new_technical_debt",
            "lines",
        }

    def test_keys_are_unique(self):
        """No two members share an upstream key."""
        keys = [metric.key for metric in SonarMetric]
        assert len(keys) == len(set(keys))

    def test_definition_accessors(self):
        """Members expose key and description."""
        assert SonarMetric.BUGS.key == "bugs"
        assert SonarMetric.BUGS.description == "Bugs"
        assert SonarMetric.TECHNICAL_DEBT.key == "sqale_index"
        assert isinstance(SonarMetric.LINES.value, MetricDefinition)

    def test_from_key(self):
        """Upstream keys resolve back to members."""
        assert SonarMetric.from_key("code_smells") is SonarMetric.CODE_SMELLS
        assert SonarMetric.from_key("coverage") is None
