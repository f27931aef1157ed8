"""Mobile app testing automation for iOS and Android with Appium.

Covers environment setup, scenario planning, screen objects, device
capabilities, parallel test implementation, emulator and optional real-device
execution, cross-platform parity, gesture and device-feature validation,
stability work, code review, CI/CD integration and documentation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from qaflow.engine.aggregator import build_output_record, meets, percent
from qaflow.engine.gates import ThresholdGate
from qaflow.engine.results import artifact_files
from qaflow.engine.sequencer import Branch, ProcessContext
from qaflow.engine.tasks import (
    ARRAY,
    BOOLEAN,
    INTEGER,
    NUMBER,
    OBJECT,
    PERCENT,
    STRING,
    agent_task,
    array_of,
    object_with,
)
from qaflow.processes import PROCESS_PREFIX
from qaflow.processes._inputs import as_bool, as_dict, as_list, as_opt_str, as_str, merged

PROCESS_ID = PROCESS_PREFIX + "mobile-testing"
TITLE = "Mobile App Testing Automation"

DEFAULT_ACCEPTANCE: Dict[str, float] = {
    "testCoverage": 85,
    "passRate": 90,
    "platformParity": 95,
    "maxExecutionTime": 45,
    "flakiness": 5,
}

EXPECTED_GESTURES = ("tap", "swipe", "scroll", "long-press", "pinch", "drag")

# Thresholds that are not caller-configurable.
MIN_PLANNED_SCENARIOS = 10
MIN_SCREEN_PARITY = 80
MIN_INITIAL_PASS_RATE = 40
MIN_GESTURE_COVERAGE = 70
MAX_DEVICE_PASS_RATE_GAP = 10


@dataclass(frozen=True)
class Inputs:
    app_name: str
    platforms: List[str] = field(default_factory=lambda: ["iOS", "Android"])
    app_files: Dict[str, Any] = field(default_factory=dict)
    test_scenarios: List[Any] = field(default_factory=list)
    device_matrix: Dict[str, Any] = field(default_factory=dict)
    cloud_provider: Optional[str] = None
    real_device_testing: bool = False
    acceptance_criteria: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ACCEPTANCE))
    output_dir: str = "mobile-testing-output"
    cicd_platform: str = "GitHub Actions"
    parallel_execution: bool = True

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Inputs":
        app_name = as_opt_str(raw.get("appName"))
        if app_name is None:
            raise ValueError("mobile-testing requires 'appName'")
        return cls(
            app_name=app_name,
            platforms=as_list(raw.get("platforms"), ["iOS", "Android"]),
            app_files=as_dict(raw.get("appFiles")),
            test_scenarios=as_list(raw.get("testScenarios")),
            device_matrix=as_dict(raw.get("deviceMatrix")),
            cloud_provider=as_opt_str(raw.get("cloudProvider")),
            real_device_testing=as_bool(raw.get("realDeviceTesting"), False),
            acceptance_criteria=merged(DEFAULT_ACCEPTANCE, raw.get("acceptanceCriteria")),
            output_dir=as_str(raw.get("outputDir"), "mobile-testing-output"),
            cicd_platform=as_str(raw.get("cicdPlatform"), "GitHub Actions"),
            parallel_execution=as_bool(raw.get("parallelExecution"), True),
        )

    def base_args(self) -> Dict[str, Any]:
        return {"appName": self.app_name, "platforms": list(self.platforms), "outputDir": self.output_dir}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

_TEST_IMPLEMENTATION_OUTPUT = {
    "testCount": INTEGER,
    "testFiles": array_of(STRING),
    "scenariosImplemented": array_of(STRING),
}

environment_setup = agent_task(
    "mobile-testing/environment-setup",
    title="Phase 1: Appium Environment Setup - {appName}",
    role="Mobile Test Automation Engineer specializing in Appium",
    task="Set up and validate Appium environment for mobile testing",
    instructions=[
        "Install Appium and the platform drivers (uiautomator2, xcuitest)",
        "Run Appium Doctor for every requested platform",
        "Verify Xcode simulators and the Android SDK/emulator as needed",
        "Validate that the app binaries exist and are installable",
        "Connect to the cloud device provider when one is configured",
        "Create the framework directory structure and configuration files",
    ],
    output_format="JSON object with environment setup status and configuration",
    properties={
        "success": BOOLEAN,
        "appiumVersion": STRING,
        "appiumDoctorStatus": {"type": "string", "enum": ["passed", "warnings", "failed"]},
        "devicesConfigured": INTEGER,
        "cloudProviderConnected": BOOLEAN,
        "configurationFiles": array_of(STRING),
    },
    required=["success", "appiumVersion", "appiumDoctorStatus", "devicesConfigured"],
    labels=["mobile-testing", "appium", "environment-setup"],
    failure_message="Environment setup failed - Appium configuration or app files invalid",
)

scenario_planning = agent_task(
    "mobile-testing/scenario-planning",
    title="Phase 2: Mobile Test Scenario Planning - {appName}",
    role="Mobile QA Strategist",
    task="Analyze mobile app and plan comprehensive test scenarios",
    instructions=[
        "Start from the requested scenarios and expand them with edge cases",
        "Categorize each scenario: authentication, core-feature, gesture, device-feature",
        "Prioritize scenarios (critical, high, medium, low)",
        "Note platform-specific behavior for iOS and Android",
        "Map scenarios to the acceptance criteria",
    ],
    output_format="JSON object with planned scenarios categorized and prioritized",
    properties={
        "plannedScenarios": array_of(
            object_with(
                {
                    "name": STRING,
                    "category": {
                        "type": "string",
                        "enum": ["authentication", "core-feature", "gesture", "device-feature"],
                    },
                    "priority": STRING,
                    "platforms": array_of(STRING),
                },
                required=["name", "category"],
            )
        ),
        "categoryBreakdown": OBJECT,
    },
    required=["plannedScenarios", "categoryBreakdown"],
    labels=["mobile-testing", "test-planning", "scenario-design"],
)

screen_object_development = agent_task(
    "mobile-testing/screen-object-development",
    title="Phase 3: Mobile Screen Objects Development - {appName}",
    role="Mobile Test Automation Developer",
    task="Build mobile screen objects with platform-specific locators",
    instructions=[
        "Create one screen object per app screen and platform",
        "Prefer accessibility ids, fall back to platform locators",
        "Share a base screen class for waits and gestures",
        "Keep locators out of test code",
    ],
    output_format="JSON object with screen objects for both platforms",
    properties={
        "screenObjects": array_of(
            object_with({"name": STRING, "platform": STRING, "filePath": STRING}, required=["name", "platform"])
        ),
        "baseClasses": array_of(STRING),
    },
    required=["screenObjects", "baseClasses"],
    labels=["mobile-testing", "screen-objects", "page-objects"],
)

device_configuration = agent_task(
    "mobile-testing/device-configuration",
    title="Phase 4: Device Capability Configuration - {appName}",
    role="Mobile DevOps Engineer",
    task="Configure device capabilities for test execution",
    instructions=[
        "Write Appium capabilities for every device in the matrix",
        "Configure emulators and simulators for local execution",
        "Configure real-device capabilities for the cloud provider when enabled",
        "Set timeouts, permissions and app reset strategy per platform",
    ],
    output_format="JSON object with device capabilities",
    properties={
        "capabilities": array_of(OBJECT),
        "realDeviceCapabilities": array_of(OBJECT),
        "totalDevices": INTEGER,
        "iosDeviceCount": INTEGER,
        "androidDeviceCount": INTEGER,
    },
    required=["capabilities", "totalDevices"],
    labels=["mobile-testing", "device-configuration", "appium"],
)

authentication_tests = agent_task(
    "mobile-testing/authentication-tests",
    title="Phase 5: Authentication Tests - {appName}",
    role="Mobile Test Automation Engineer",
    task="Implement authentication test scenarios for mobile app",
    instructions=[
        "Implement login, logout and registration flows",
        "Cover invalid credentials, session expiry and biometric prompts",
        "Use the screen objects; no raw locators in tests",
        "Tag tests by platform and priority",
    ],
    output_format="JSON object with implemented authentication tests",
    properties=_TEST_IMPLEMENTATION_OUTPUT,
    required=["testCount", "testFiles"],
    labels=["mobile-testing", "authentication", "test-implementation"],
)

core_feature_tests = agent_task(
    "mobile-testing/core-feature-tests",
    title="Phase 5: Core Feature Tests - {appName}",
    role="Mobile Test Automation Engineer",
    task="Implement core feature test scenarios",
    instructions=[
        "Implement the critical user journeys first",
        "Cover navigation, forms, lists and offline behavior",
        "Keep tests independent and idempotent",
        "Tag tests by platform and priority",
    ],
    output_format="JSON object with core feature tests",
    properties=_TEST_IMPLEMENTATION_OUTPUT,
    required=["testCount", "testFiles"],
    labels=["mobile-testing", "core-features", "test-implementation"],
)

gesture_tests = agent_task(
    "mobile-testing/gesture-tests",
    title="Phase 5: Gesture Tests - {appName}",
    role="Mobile Interaction Testing Specialist",
    task="Implement mobile gesture test scenarios",
    instructions=[
        "Implement tap, swipe, scroll, long-press, pinch and drag interactions",
        "Use W3C actions rather than deprecated touch actions",
        "Account for screen size differences between devices",
    ],
    output_format="JSON object with gesture tests",
    properties={**_TEST_IMPLEMENTATION_OUTPUT, "gesturesCovered": array_of(STRING)},
    required=["testCount", "testFiles", "gesturesCovered"],
    labels=["mobile-testing", "gestures", "test-implementation"],
)

device_feature_tests = agent_task(
    "mobile-testing/device-feature-tests",
    title="Phase 5: Device Feature Tests - {appName}",
    role="Mobile Device Testing Specialist",
    task="Implement device-specific feature tests",
    instructions=[
        "Cover camera, location, notifications and permissions",
        "Cover orientation changes and backgrounding",
        "Mock hardware features unavailable on emulators",
    ],
    output_format="JSON object with device feature tests",
    properties={**_TEST_IMPLEMENTATION_OUTPUT, "featuresCovered": array_of(STRING)},
    required=["testCount", "testFiles", "featuresCovered"],
    labels=["mobile-testing", "device-features", "test-implementation"],
)

test_execution = agent_task(
    "mobile-testing/test-execution",
    title="Phase 6: Test Execution ({executionType}) - {appName}",
    role="Mobile Test Execution Engineer",
    task="Execute the mobile test suite on the requested device type",
    instructions=[
        "Run the suite on every configured device for the execution type",
        "Run in parallel when parallel execution is enabled",
        "Record pass, fail and skip counts per platform",
        "Re-run failures once to identify flaky tests",
        "Publish an HTML execution report",
    ],
    output_format="JSON object with test execution results",
    properties={
        "totalTests": INTEGER,
        "passed": INTEGER,
        "failed": INTEGER,
        "skipped": INTEGER,
        "passRate": PERCENT,
        "flakinessRate": PERCENT,
        "flakyTests": array_of(STRING),
        "platformBreakdown": OBJECT,
        "topFailureReasons": array_of(STRING),
        "deviceSpecificIssues": ARRAY,
        "reportPath": STRING,
    },
    required=["totalTests", "passed", "failed", "passRate", "flakinessRate", "platformBreakdown"],
    labels=["mobile-testing", "test-execution"],
)

debugging_fixes = agent_task(
    "mobile-testing/debugging-fixes",
    title="Phase 7: Test Debugging and Fixes - {appName}",
    role="Mobile Test Debugging Expert",
    task="Debug mobile test failures and implement fixes",
    instructions=[
        "Group failures by root cause",
        "Fix locator, timing and synchronization issues",
        "Separate app defects from test defects",
        "Document issues that remain open",
    ],
    output_format="JSON object with debugging results and fixes",
    properties={"totalIssuesFixed": INTEGER, "remainingIssues": ARRAY, "appDefectsFound": ARRAY},
    required=["totalIssuesFixed", "remainingIssues"],
    labels=["mobile-testing", "debugging", "test-fixes"],
)

cross_platform_parity = agent_task(
    "mobile-testing/cross-platform-parity",
    title="Phase 8: Cross-Platform Parity Validation - {appName}",
    role="Mobile Cross-Platform QA Analyst",
    task="Validate test and feature parity across iOS and Android",
    instructions=[
        "Compare test coverage per scenario across platforms",
        "Compare pass rates per platform",
        "List every gap with its platform and severity",
        "Score overall parity from 0 to 100",
    ],
    output_format="JSON object with parity analysis",
    properties={
        "parityScore": PERCENT,
        "parityGaps": ARRAY,
        "recommendation": STRING,
        "parityReportPath": STRING,
    },
    required=["parityScore", "parityGaps", "recommendation"],
    labels=["mobile-testing", "cross-platform", "parity-validation"],
)

gesture_validation = agent_task(
    "mobile-testing/gesture-validation",
    title="Phase 9: Gesture Validation - {appName}",
    role="Mobile Interaction QA Specialist",
    task="Validate mobile gesture coverage and accuracy",
    instructions=[
        "Check which standard gestures are exercised by the suite",
        "Validate gesture accuracy on different screen sizes",
        "Report gestures that are unreliable on either platform",
    ],
    output_format="JSON object with gesture validation results",
    properties={"gesturesCovered": array_of(STRING), "coveragePercentage": PERCENT, "reportPath": STRING},
    required=["gesturesCovered", "coveragePercentage", "reportPath"],
    labels=["mobile-testing", "gesture-validation", "interaction-testing"],
)

device_feature_validation = agent_task(
    "mobile-testing/device-feature-validation",
    title="Phase 10: Device Feature Validation - {appName}",
    role="Mobile Device Feature QA Specialist",
    task="Validate device-specific feature coverage",
    instructions=[
        "Check coverage of camera, location, notifications and permissions",
        "Check behavior across OS versions in the device matrix",
        "Report uncovered features with a recommendation",
    ],
    output_format="JSON object with device feature validation",
    properties={"featuresCovered": array_of(STRING), "coveragePercentage": PERCENT, "reportPath": STRING},
    required=["featuresCovered", "coveragePercentage", "reportPath"],
    labels=["mobile-testing", "device-features", "feature-validation"],
)

stability_improvements = agent_task(
    "mobile-testing/stability-improvements",
    title="Phase 11: Mobile Test Stability Improvements - {appName}",
    role="Mobile Test Stability Engineer",
    task="Eliminate flakiness and improve mobile test stability",
    instructions=[
        "Replace fixed sleeps with explicit waits",
        "Add retries only around known-unstable infrastructure steps",
        "Reset app state between tests",
        "Score suite stability from 0 to 100",
    ],
    output_format="JSON object with stability improvements",
    properties={"stabilityScore": PERCENT, "flakinessReduction": NUMBER, "improvementsMade": ARRAY},
    required=["stabilityScore", "flakinessReduction", "improvementsMade"],
    labels=["mobile-testing", "stability", "flakiness-elimination"],
)

code_review = agent_task(
    "mobile-testing/code-review",
    title="Phase 14: Mobile Test Code Review - {appName}",
    role="Senior Mobile Test Automation Architect",
    task="Conduct code review of mobile test suite",
    instructions=[
        "Review screen objects and tests against mobile testing best practices",
        "Flag hard-coded waits, brittle locators and shared state",
        "Classify findings as critical or suggestions",
    ],
    output_format="JSON object with code review results",
    properties={
        "overallScore": PERCENT,
        "criticalIssues": ARRAY,
        "suggestions": ARRAY,
        "bestPracticeViolations": ARRAY,
        "reviewReportPath": STRING,
    },
    required=["overallScore", "criticalIssues", "suggestions"],
    labels=["mobile-testing", "code-review", "quality-assurance"],
)

cicd_integration = agent_task(
    "mobile-testing/cicd-integration",
    title="Phase 15: CI/CD Integration - {appName}",
    role="Mobile DevOps Engineer",
    task="Configure CI/CD pipeline for mobile test automation",
    instructions=[
        "Create the pipeline configuration for the requested CI/CD platform",
        "Build the app, boot devices and run the suite in stages",
        "Publish reports and fail the build on quality gate misses",
    ],
    output_format="JSON object with CI/CD integration status",
    properties={"ready": BOOLEAN, "pipelineConfigPath": STRING, "stages": array_of(STRING)},
    required=["ready", "pipelineConfigPath", "stages"],
    labels=["mobile-testing", "cicd", "devops"],
)

documentation_generation = agent_task(
    "mobile-testing/documentation-generation",
    title="Phase 16: Mobile Test Documentation - {appName}",
    role="Technical Documentation Specialist",
    task="Generate comprehensive mobile test documentation",
    instructions=[
        "Write the test suite overview and architecture",
        "Write the usage guide for running tests locally and in CI",
        "Write the device setup guide",
        "Write a troubleshooting section for common failures",
    ],
    output_format="JSON object with documentation paths",
    properties={
        "testSuiteDocPath": STRING,
        "usageGuidePath": STRING,
        "deviceSetupGuidePath": STRING,
        "troubleshootingPath": STRING,
    },
    required=["testSuiteDocPath", "usageGuidePath", "deviceSetupGuidePath"],
    labels=["mobile-testing", "documentation"],
)

final_assessment = agent_task(
    "mobile-testing/final-assessment",
    title="Phase 17: Final Mobile Test Assessment - {appName}",
    role="Mobile QA Lead and Test Strategy Expert",
    task="Conduct final assessment of mobile test suite",
    instructions=[
        "Summarize suite size, pass rate, flakiness and platform parity",
        "Score stability, coverage and maintainability from 0 to 100",
        "Compare every metric with the acceptance criteria",
        "Decide whether the suite is production ready and give a verdict",
    ],
    output_format="JSON object with final assessment",
    properties={
        "testSuiteStats": object_with(
            {
                "totalTests": INTEGER,
                "passRate": PERCENT,
                "flakinessRate": PERCENT,
                "platformParity": PERCENT,
                "averageExecutionTime": NUMBER,
            }
        ),
        "stabilityScore": PERCENT,
        "coverageScore": PERCENT,
        "maintainabilityScore": PERCENT,
        "productionReady": BOOLEAN,
        "verdict": STRING,
        "recommendation": STRING,
        "metricsReportPath": STRING,
    },
    required=["testSuiteStats", "stabilityScore", "productionReady", "verdict"],
    labels=["mobile-testing", "final-assessment", "metrics"],
)

# Fan-out branches in declaration order, keyed by scenario category.
TEST_IMPLEMENTATION_BRANCHES = (
    ("authentication", authentication_tests),
    ("core-feature", core_feature_tests),
    ("gesture", gesture_tests),
    ("device-feature", device_feature_tests),
)


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------


async def process(inputs: Inputs, ctx: ProcessContext) -> Dict[str, Any]:
    criteria = inputs.acceptance_criteria
    base = inputs.base_args()

    ctx.log("info", f"Starting Mobile App Testing Automation for {inputs.app_name}")
    ctx.log("info", f"Platforms: {', '.join(inputs.platforms)}")
    ctx.log("info", f"Cloud Provider: {inputs.cloud_provider or 'Local Emulators/Simulators'}")

    # Phase 1
    env = await ctx.task(
        environment_setup,
        {
            **base,
            "appFiles": inputs.app_files,
            "cloudProvider": inputs.cloud_provider,
            "deviceMatrix": inputs.device_matrix,
        },
    )
    await ctx.breakpoint(
        question=(
            f"Phase 1 Complete: Appium environment configured. {env['devicesConfigured']} device(s) configured "
            f"across {len(inputs.platforms)} platform(s). Appium Doctor: {env['appiumDoctorStatus']}. "
            "Proceed with test development?"
        ),
        title="Environment Setup Review",
        context={
            "platforms": inputs.platforms,
            "devicesConfigured": env["devicesConfigured"],
            "appiumVersion": env["appiumVersion"],
            "appiumDoctorStatus": env["appiumDoctorStatus"],
            "cloudProviderConnected": env.get("cloudProviderConnected"),
            "files": artifact_files(env.artifacts),
        },
    )

    # Phase 2
    planning = await ctx.task(
        scenario_planning,
        {
            **base,
            "appFiles": inputs.app_files,
            "testScenarios": inputs.test_scenarios,
            "acceptanceCriteria": criteria,
        },
    )
    scenarios: List[Dict[str, Any]] = list(planning["plannedScenarios"])
    scenario_count = len(scenarios)
    await ctx.gate(
        ThresholdGate.below("scenario-count", MIN_PLANNED_SCENARIOS),
        scenario_count,
        title="Test Scenario Coverage Review",
        question=(
            f"Only {scenario_count} test scenarios planned. Mobile apps typically require 15-25 scenarios "
            "for comprehensive coverage. Review scenarios and approve to continue?"
        ),
        context={
            "scenarioCount": scenario_count,
            "plannedScenarios": [{"name": s.get("name"), "priority": s.get("priority")} for s in scenarios],
            "recommendation": "Consider adding more scenarios for edge cases, gestures, and device features",
            "files": artifact_files(planning.artifacts),
        },
    )

    # Phase 3
    screens = await ctx.task(
        screen_object_development,
        {**base, "plannedScenarios": scenarios, "appFiles": inputs.app_files},
    )
    screen_objects: List[Dict[str, Any]] = list(screens["screenObjects"])
    ios_screens = sum(1 for s in screen_objects if s.get("platform") == "iOS")
    android_screens = sum(1 for s in screen_objects if s.get("platform") == "Android")
    if "iOS" in inputs.platforms and "Android" in inputs.platforms:
        parity = percent(min(ios_screens, android_screens), max(ios_screens, android_screens))
        await ctx.gate(
            ThresholdGate.below("screen-parity", MIN_SCREEN_PARITY),
            parity,
            title="Cross-Platform Screen Parity",
            question=(
                f"Platform parity warning: iOS screens: {ios_screens}, Android screens: {android_screens}. "
                f"Parity: {parity or 0:.0f}%. Target: >{MIN_SCREEN_PARITY}%. Review and approve?"
            ),
            context={
                "iosScreens": ios_screens,
                "androidScreens": android_screens,
                "parity": parity,
                "screenObjects": [{"name": s.get("name"), "platform": s.get("platform")} for s in screen_objects],
                "files": artifact_files(screens.artifacts),
            },
        )

    # Phase 4
    devices = await ctx.task(
        device_configuration,
        {
            **base,
            "deviceMatrix": inputs.device_matrix,
            "appFiles": inputs.app_files,
            "cloudProvider": inputs.cloud_provider,
            "realDeviceTesting": inputs.real_device_testing,
        },
    )
    capabilities = list(devices["capabilities"])

    # Phase 5
    implemented = await ctx.parallel(
        [
            Branch(
                definition,
                {
                    **base,
                    "scenarios": [s for s in scenarios if s.get("category") == category],
                    "screenObjects": screen_objects,
                    "deviceCapabilities": capabilities,
                },
            )
            for category, definition in TEST_IMPLEMENTATION_BRANCHES
        ]
    )
    auth_tests, core_tests, gesture_impl, device_impl = implemented
    total_tests_implemented = sum(r["testCount"] for r in implemented)
    ctx.log("info", f"Total mobile tests implemented: {total_tests_implemented}")

    # Phase 6
    execution_args = {
        **base,
        "deviceCapabilities": capabilities,
        "parallelExecution": inputs.parallel_execution,
    }
    initial = await ctx.task(
        test_execution,
        {**execution_args, "executionType": "emulator"},
        key="initial-execution",
    )
    await ctx.gate(
        ThresholdGate.below("initial-pass-rate", MIN_INITIAL_PASS_RATE),
        initial["passRate"],
        title="Initial Execution Results - Low Pass Rate",
        question=(
            f"Initial test execution pass rate: {initial['passRate']}%. Below {MIN_INITIAL_PASS_RATE}% threshold. "
            "This indicates significant issues. Review failures and continue debugging?"
        ),
        context={
            "passRate": initial["passRate"],
            "totalTests": initial["totalTests"],
            "passed": initial["passed"],
            "failed": initial["failed"],
            "platformBreakdown": initial["platformBreakdown"],
            "topFailures": initial.get("topFailureReasons", []),
            "files": artifact_files(initial.artifacts),
        },
    )

    # Phase 7
    debugging = await ctx.task(
        debugging_fixes,
        {
            **base,
            "executionResults": initial.to_dict(),
            "screenObjects": screen_objects,
            "scenarios": scenarios,
        },
    )

    # Phase 8
    parity_check = await ctx.task(
        cross_platform_parity,
        {
            **base,
            "authenticationTests": auth_tests.to_dict(),
            "coreFeatureTests": core_tests.to_dict(),
            "gestureTests": gesture_impl.to_dict(),
            "deviceFeatureTests": device_impl.to_dict(),
            "executionResults": initial.to_dict(),
            "acceptanceCriteria": criteria,
        },
    )
    parity_score = parity_check["parityScore"]
    await ctx.gate(
        ThresholdGate.below("platform-parity", criteria["platformParity"]),
        parity_score,
        title="Platform Parity Quality Gate",
        question=(
            f"Cross-platform parity score: {parity_score}%. Target: {criteria['platformParity']}%. "
            "Platform differences detected. Review parity gaps and approve to proceed?"
        ),
        context={
            "parityScore": parity_score,
            "targetParity": criteria["platformParity"],
            "parityGaps": parity_check["parityGaps"],
            "recommendation": parity_check["recommendation"],
            "files": artifact_files(parity_check.artifacts),
        },
    )

    # Phase 9
    gestures = await ctx.task(
        gesture_validation,
        {**base, "gestureTests": gesture_impl.to_dict(), "deviceCapabilities": capabilities},
    )
    gestures_covered = list(gestures["gesturesCovered"])
    missing_gestures = [g for g in EXPECTED_GESTURES if g not in gestures_covered]
    gesture_coverage = percent(len(gestures_covered), len(EXPECTED_GESTURES))
    await ctx.gate(
        ThresholdGate.below("gesture-coverage", MIN_GESTURE_COVERAGE),
        gesture_coverage,
        title="Gesture Coverage Review",
        question=(
            f"Gesture coverage: {gesture_coverage:.0f}% ({len(gestures_covered)}/{len(EXPECTED_GESTURES)} gestures). "
            f"Missing: {', '.join(missing_gestures)}. Approve to continue?"
        ),
        context={
            "gestureCoverage": gesture_coverage,
            "gesturesCovered": gestures_covered,
            "missingGestures": missing_gestures,
            "files": artifact_files(gestures.artifacts),
        },
    )

    # Phase 10
    features = await ctx.task(
        device_feature_validation,
        {**base, "deviceFeatureTests": device_impl.to_dict(), "deviceCapabilities": capabilities},
    )

    # Phase 11
    stability = await ctx.task(
        stability_improvements,
        {**base, "executionResults": initial.to_dict(), "debuggingResults": debugging.to_dict()},
    )

    # Phase 12
    real_device = None
    if inputs.real_device_testing and inputs.cloud_provider:
        ctx.log("info", "Phase 12: Running tests on real devices via cloud provider")
        real_device = await ctx.task(
            test_execution,
            {
                **execution_args,
                "deviceCapabilities": devices.get("realDeviceCapabilities", []),
                "executionType": "real-device",
                "cloudProvider": inputs.cloud_provider,
            },
            key="real-device-execution",
        )
        device_gap = abs(real_device["passRate"] - initial["passRate"])
        await ctx.gate(
            ThresholdGate.above("real-device-pass-rate-gap", MAX_DEVICE_PASS_RATE_GAP),
            device_gap,
            title="Real Device vs Emulator Parity",
            question=(
                f"Real device pass rate: {real_device['passRate']}%, Emulator pass rate: {initial['passRate']}%. "
                f"Difference: {device_gap:.1f}%. Investigate device-specific issues?"
            ),
            context={
                "realDevicePassRate": real_device["passRate"],
                "emulatorPassRate": initial["passRate"],
                "deviceParity": device_gap,
                "realDeviceIssues": real_device.get("deviceSpecificIssues", []),
                "files": artifact_files(real_device.artifacts),
            },
        )

    # Phase 13
    final = await ctx.task(test_execution, {**execution_args, "executionType": "final"}, key="final-execution")
    final_pass_rate = final["passRate"]
    flakiness_rate = final["flakinessRate"]
    await ctx.gate(
        ThresholdGate.below("final-pass-rate", criteria["passRate"]),
        final_pass_rate,
        title="Pass Rate Quality Gate",
        question=(
            f"Final test pass rate: {final_pass_rate}%. Target: {criteria['passRate']}%. "
            "Below acceptance criteria. Review and decide to proceed or iterate?"
        ),
        context={
            "finalPassRate": final_pass_rate,
            "targetPassRate": criteria["passRate"],
            "totalTests": final["totalTests"],
            "platformBreakdown": final["platformBreakdown"],
            "recommendation": "Consider additional debugging or adjust acceptance criteria",
            "files": artifact_files(final.artifacts),
        },
    )
    await ctx.gate(
        ThresholdGate.above("flakiness-rate", criteria["flakiness"]),
        flakiness_rate,
        title="Flakiness Quality Gate",
        question=(
            f"Flakiness rate: {flakiness_rate}%. Target: <{criteria['flakiness']}%. "
            "Mobile tests are inherently more flaky. Continue or stabilize further?"
        ),
        context={
            "flakinessRate": flakiness_rate,
            "targetFlakiness": criteria["flakiness"],
            "flakyTests": final.get("flakyTests", []),
            "recommendation": "Apply additional waits and retry mechanisms",
            "files": artifact_files(stability.artifacts),
        },
    )

    # Phase 14
    review = await ctx.task(
        code_review,
        {
            **base,
            "screenObjects": screen_objects,
            "testFiles": [f for r in implemented for f in r["testFiles"]],
            "executionResults": final.to_dict(),
        },
    )
    critical_issues = list(review["criticalIssues"])
    if critical_issues:
        await ctx.breakpoint(
            question=(
                f"Code review identified {len(critical_issues)} critical issue(s) in mobile test code. "
                "Review and approve fixes?"
            ),
            title="Code Review Critical Issues",
            context={
                "criticalIssues": critical_issues,
                "suggestions": review["suggestions"],
                "bestPracticeViolations": review.get("bestPracticeViolations", []),
                "files": artifact_files(review.artifacts),
            },
        )

    # Phase 15
    cicd = await ctx.task(
        cicd_integration,
        {
            **base,
            "cloudProvider": inputs.cloud_provider,
            "deviceConfiguration": devices.to_dict(),
            "executionResults": final.to_dict(),
            "cicdPlatform": inputs.cicd_platform,
            "parallelExecution": inputs.parallel_execution,
        },
    )

    # Phase 16
    phase_outputs = {
        "scenarioPlanning": planning.to_dict(),
        "screenObjectDevelopment": screens.to_dict(),
        "deviceConfiguration": devices.to_dict(),
        "authenticationTests": auth_tests.to_dict(),
        "coreFeatureTests": core_tests.to_dict(),
        "gestureTests": gesture_impl.to_dict(),
        "deviceFeatureTests": device_impl.to_dict(),
        "gestureValidation": gestures.to_dict(),
        "deviceFeatureValidation": features.to_dict(),
        "stabilityImprovements": stability.to_dict(),
        "realDeviceExecution": real_device.to_dict() if real_device else None,
        "codeReview": review.to_dict(),
        "cicdIntegration": cicd.to_dict(),
    }
    docs = await ctx.task(
        documentation_generation,
        {**base, **phase_outputs, "executionResults": final.to_dict(), "cloudProvider": inputs.cloud_provider},
    )

    # Phase 17
    assessment = await ctx.task(
        final_assessment,
        {
            **base,
            **phase_outputs,
            "parityValidation": parity_check.to_dict(),
            "finalExecution": final.to_dict(),
            "acceptanceCriteria": criteria,
        },
    )
    stats: Dict[str, Any] = dict(assessment["testSuiteStats"])
    stability_score = assessment["stabilityScore"]
    ctx.log("info", f"Mobile test suite stability score: {stability_score}/100")

    final_files = [
        (docs["testSuiteDocPath"], "markdown", "Mobile Test Suite Documentation"),
        (assessment.get("metricsReportPath"), "json", "Metrics Report"),
        (final.get("reportPath"), "html", "Test Execution Report"),
        (review.get("reviewReportPath"), "markdown", "Code Review Report"),
        (parity_check.get("parityReportPath"), "json", "Platform Parity Report"),
    ]
    await ctx.breakpoint(
        question=(
            f"Mobile App Testing Automation Complete for {inputs.app_name}. Stability Score: {stability_score}/100, "
            f"Pass Rate: {stats.get('passRate')}%, Platform Parity: {stats.get('platformParity')}%. "
            "Approve test suite for production use?"
        ),
        title="Final Mobile Test Suite Review",
        context={
            "summary": {
                "appName": inputs.app_name,
                "platforms": inputs.platforms,
                "totalTests": stats.get("totalTests"),
                "passRate": stats.get("passRate"),
                "flakinessRate": stats.get("flakinessRate"),
                "stabilityScore": stability_score,
                "platformParity": stats.get("platformParity"),
                "scenariosCovered": scenario_count,
                "screenObjects": len(screen_objects),
                "devicesCovered": devices["totalDevices"],
                "gesturesCovered": len(gestures_covered),
                "realDeviceTesting": real_device is not None,
                "cicdReady": cicd["ready"],
                "cloudProvider": inputs.cloud_provider or "Local",
            },
            "acceptanceCriteria": criteria,
            "verdict": assessment["verdict"],
            "recommendation": assessment.get("recommendation"),
            "files": [{"path": p, "format": f, "label": label} for p, f, label in final_files if p],
        },
    )

    return build_output_record(
        ctx,
        {
            "appName": inputs.app_name,
            "platforms": inputs.platforms,
            "cloudProvider": inputs.cloud_provider or "Local",
            "stabilityScore": stability_score,
            "testSuiteStats": {
                "totalTests": stats.get("totalTests"),
                "passRate": stats.get("passRate"),
                "flakinessRate": stats.get("flakinessRate"),
                "platformParity": stats.get("platformParity"),
                "averageExecutionTime": stats.get("averageExecutionTime"),
                "scenariosCovered": scenario_count,
                "screenObjectsCreated": len(screen_objects),
                "authenticationTests": auth_tests["testCount"],
                "coreFeatureTests": core_tests["testCount"],
                "gestureTests": gesture_impl["testCount"],
                "deviceFeatureTests": device_impl["testCount"],
            },
            "deviceCoverage": {
                "totalDevices": devices["totalDevices"],
                "iosDevices": devices.get("iosDeviceCount"),
                "androidDevices": devices.get("androidDeviceCount"),
                "realDevices": len(devices.get("realDeviceCapabilities", [])) if inputs.real_device_testing else 0,
                "emulators": len(capabilities),
            },
            "testExecutionReport": {
                "passed": final["passed"],
                "failed": final["failed"],
                "skipped": final.get("skipped"),
                "flakyTests": final.get("flakyTests", []),
                "platformBreakdown": final["platformBreakdown"],
                "reportPath": final.get("reportPath"),
                "realDeviceResults": (
                    {
                        "passed": real_device["passed"],
                        "failed": real_device["failed"],
                        "passRate": real_device["passRate"],
                    }
                    if real_device
                    else None
                ),
            },
            "crossPlatformParity": {
                "parityScore": parity_score,
                "parityGaps": parity_check["parityGaps"],
                "parityReportPath": parity_check.get("parityReportPath"),
            },
            "gestureTesting": {
                "gesturesCovered": gestures_covered,
                "gestureCoverage": gesture_coverage,
                "gestureValidationReport": gestures["reportPath"],
            },
            "deviceFeatureTesting": {
                "featuresCovered": features["featuresCovered"],
                "featureValidationReport": features["reportPath"],
            },
            "qualityGates": {
                "passRateMet": meets(final_pass_rate, criteria["passRate"]),
                "flakinessMet": meets(flakiness_rate, criteria["flakiness"], "at_most"),
                "platformParityMet": meets(parity_score, criteria["platformParity"]),
                "executionTimeMet": meets(stats.get("averageExecutionTime"), criteria["maxExecutionTime"], "at_most"),
                "coverageMet": meets(assessment.get("coverageScore"), criteria["testCoverage"]),
            },
            "cicdIntegration": {
                "ready": cicd["ready"],
                "pipelineConfigPath": cicd["pipelineConfigPath"],
                "parallelExecutionEnabled": inputs.parallel_execution,
                "platform": inputs.cicd_platform,
            },
            "documentation": {
                "testSuiteDocPath": docs["testSuiteDocPath"],
                "usageGuidePath": docs["usageGuidePath"],
                "troubleshootingPath": docs.get("troubleshootingPath"),
                "deviceSetupGuidePath": docs["deviceSetupGuidePath"],
            },
            "finalAssessment": {
                "verdict": assessment["verdict"],
                "recommendation": assessment.get("recommendation"),
                "productionReady": assessment["productionReady"],
                "metricsReportPath": assessment.get("metricsReportPath"),
            },
        },
        metadata={
            "platforms": inputs.platforms,
            "cloudProvider": inputs.cloud_provider or "Local",
            "realDeviceTesting": inputs.real_device_testing,
            "outputDir": inputs.output_dir,
        },
    )
