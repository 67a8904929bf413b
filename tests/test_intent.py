"""
Tests for the intent analyzer.
"""

from andy.agents.intent import IntentAnalyzer


def test_tax_module():
    result = IntentAnalyzer().analyze("When is my 1040 due?")
    assert result.module == "TAX"
    assert result.confidence == 0.8


def test_financial_module():
    result = IntentAnalyzer().analyze("Help me plan a monthly budget")
    assert result.module == "FINANCIAL"
    assert result.confidence == 0.7


def test_credit_module():
    result = IntentAnalyzer().analyze("Why did my score drop?")
    assert result.module == "CREDIT"


def test_tax_wins_over_credit():
    assert IntentAnalyzer().analyze("Is there a tax credit for EVs?").module == "TAX"


def test_no_module():
    result = IntentAnalyzer().analyze("hello")
    assert result.module is None
    assert result.confidence == 0.0
    assert result.requires_action is False


def test_requires_action():
    assert IntentAnalyzer().analyze("Please submit my return").requires_action is True
    assert IntentAnalyzer().analyze("Quiero enviar mi declaración").requires_action is True


def test_config_overrides_group():
    analyzer = IntentAnalyzer.from_config({"intent": {"credit": ["fico"]}})
    assert analyzer.analyze("what is a fico").module == "CREDIT"
    assert analyzer.analyze("what is a score").module is None


def test_as_metadata():
    meta = IntentAnalyzer().analyze("file my taxes").as_metadata()
    assert meta == {"module_type": "TAX", "requires_action": True}
