"""Tests for request classification."""

import pytest

from stackpilot.core.intent import KeywordIntentClassifier


class TestKeywordIntentClassifier:
    @pytest.mark.parametrize(
        "text",
        ["Install Grafana", "please deploy redis", "I need MONITORING", "set up elk for logs"],
    )
    def test_deployment_requests(self, text):
        assert KeywordIntentClassifier().is_deployment_request(text) is True

    @pytest.mark.parametrize("text", ["what time is it", "how many pods are running?"])
    def test_other_requests(self, text):
        assert KeywordIntentClassifier().is_deployment_request(text) is False

    def test_custom_keywords(self):
        classifier = KeywordIntentClassifier(keywords=["kafka"])
        assert classifier.is_deployment_request("kafka cluster") is True
        assert classifier.is_deployment_request("install grafana") is False

    def test_explain_adds_stack_hints(self):
        description = KeywordIntentClassifier().explain("  grafana please ")
        assert description.startswith("Deploy Grafana monitoring stack")
        assert description.endswith("grafana please")

    def test_explain_deduplicates_hints(self):
        description = KeywordIntentClassifier().explain("elk with elasticsearch")
        assert description.count("ELK (Elasticsearch") == 1

    def test_explain_plain_request(self):
        assert KeywordIntentClassifier().explain("redis") == "redis"
