from cache_harness.analysis import StepClassifier
from cache_harness.contracts import CachingConfig


def test_default_sink_patterns_match_output_registration_steps():
    classifier = StepClassifier()

    assert classifier.is_infrastructure_step("RegisterSourceOutput")
    assert classifier.is_infrastructure_step("RegisterSourceOutput_Emit")
    assert classifier.is_infrastructure_step("registerpostinitializationoutput")
    assert not classifier.is_infrastructure_step("ParseInputs")
    assert not classifier.is_infrastructure_step("")


def test_default_file_patterns_match_generated_scaffolding():
    classifier = StepClassifier()

    assert classifier.is_infrastructure_file("Demo.Attributes.g.cs")
    assert classifier.is_infrastructure_file("PolyfillExtensions.g.cs")
    assert classifier.is_infrastructure_file("Microsoft.CodeAnalysis.EmbeddedAttribute.g.cs")
    assert not classifier.is_infrastructure_file("Foo.g.cs")


def test_classification_is_stable_across_calls():
    classifier = StepClassifier()

    results = {classifier.is_infrastructure_step("SourceOutput.Collect") for _ in range(5)}

    assert results == {True}


def test_custom_patterns_replace_defaults():
    classifier = StepClassifier(
        CachingConfig(sink_step_patterns=["Publish"], infrastructure_file_patterns=["_scaffold"])
    )

    assert classifier.is_infrastructure_step("PublishReports")
    assert not classifier.is_infrastructure_step("RegisterSourceOutput")
    assert classifier.is_infrastructure_file("models_SCAFFOLD.py")
    assert not classifier.is_infrastructure_file("Demo.Attributes.g.cs")
