"""Visual regression testing setup with baseline capture and visual quality gates.

Plans the strategy, configures the tool, viewports and dynamic-content
masking, captures page and component baselines, implements visual tests,
runs the first comparison, triages the differences and wires the suite into
CI/CD.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from qaflow.engine.aggregator import build_output_record
from qaflow.engine.results import PhaseResult, artifact_files
from qaflow.engine.sequencer import ProcessContext
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
from qaflow.processes._inputs import as_bool, as_list, as_opt_str, as_str, merged

PROCESS_ID = PROCESS_PREFIX + "visual-regression"
TITLE = "Visual Regression Testing Setup"

DEFAULT_VIEWPORTS = ["mobile", "tablet", "desktop"]
DEFAULT_THRESHOLDS: Dict[str, float] = {"pixelDiff": 0.1, "layoutShift": 0.05}
DEFAULT_ACCEPTANCE: Dict[str, Any] = {
    "maxVisualDifferences": 5,
    "criticalDifferenceThreshold": 1.0,
    "autoApproveMinorChanges": False,
}


@dataclass(frozen=True)
class Inputs:
    project_name: str
    application_url: str
    pages: List[str] = field(default_factory=list)
    components: List[str] = field(default_factory=list)
    framework: str = "playwright"
    tool: str = "percy"
    viewports: List[str] = field(default_factory=lambda: list(DEFAULT_VIEWPORTS))
    baseline_strategy: str = "branch"
    thresholds: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    mask_dynamic_content: bool = True
    animation_handling: str = "disable"
    cross_browser_testing: bool = False
    browsers: List[str] = field(default_factory=lambda: ["chromium"])
    output_dir: str = "visual-regression-output"
    capture_full_page: bool = True
    cicd_integration: bool = True
    acceptance_criteria: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_ACCEPTANCE))
    custom_viewports: List[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Inputs":
        project_name = as_opt_str(raw.get("projectName"))
        application_url = as_opt_str(raw.get("applicationUrl"))
        if project_name is None or application_url is None:
            raise ValueError("visual-regression requires 'projectName' and 'applicationUrl'")
        return cls(
            project_name=project_name,
            application_url=application_url,
            pages=as_list(raw.get("pages")),
            components=as_list(raw.get("components")),
            framework=as_str(raw.get("framework"), "playwright"),
            tool=as_str(raw.get("tool"), "percy"),
            viewports=as_list(raw.get("viewports"), DEFAULT_VIEWPORTS),
            baseline_strategy=as_str(raw.get("baselineStrategy"), "branch"),
            thresholds=merged(DEFAULT_THRESHOLDS, raw.get("thresholds")),
            mask_dynamic_content=as_bool(raw.get("maskDynamicContent"), True),
            animation_handling=as_str(raw.get("animationHandling"), "disable"),
            cross_browser_testing=as_bool(raw.get("crossBrowserTesting"), False),
            browsers=as_list(raw.get("browsers"), ["chromium"]),
            output_dir=as_str(raw.get("outputDir"), "visual-regression-output"),
            capture_full_page=as_bool(raw.get("captureFullPage"), True),
            cicd_integration=as_bool(raw.get("cicdIntegration"), True),
            acceptance_criteria=merged(DEFAULT_ACCEPTANCE, raw.get("acceptanceCriteria")),
            custom_viewports=as_list(raw.get("customViewports")),
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

SEVERITY = {"type": "string", "enum": ["critical", "high", "medium", "low"]}

strategy = agent_task(
    "visual-regression/visual-regression-strategy",
    title="Phase 1: Visual Regression Strategy - {projectName}",
    role="Visual Testing Architect",
    task="Plan comprehensive visual regression testing strategy",
    instructions=[
        "Identify visual testing scenarios across pages and components",
        "Determine critical visual elements requiring regression coverage",
        "Plan viewport and cross-browser coverage",
        "Design baseline capture and management",
        "Identify dynamic content requiring masking",
        "Estimate baseline count and storage requirements",
    ],
    output_format="JSON object with the visual regression strategy",
    properties={
        "success": BOOLEAN,
        "totalScenarios": INTEGER,
        "estimatedBaselines": INTEGER,
        "testCoverage": object_with(
            {"pages": ARRAY, "components": ARRAY, "viewports": ARRAY, "browsers": ARRAY, "totalCombinations": INTEGER}
        ),
        "criticalElements": array_of(object_with({"element": STRING, "importance": SEVERITY, "testingStrategy": STRING})),
        "storageEstimate": STRING,
        "strategyDocumentPath": STRING,
    },
    required=["success", "totalScenarios", "estimatedBaselines", "testCoverage"],
    labels=["visual-regression", "strategy", "planning"],
    failure_message="Visual regression strategy planning failed",
)

tool_setup = agent_task(
    "visual-regression/visual-regression-tool-setup",
    title="Phase 2: Tool Setup - {tool} - {projectName}",
    role="Visual Testing Engineer",
    task="Set up and configure visual regression testing tools",
    instructions=[
        "Install the visual testing tool and its framework integration",
        "Configure viewport sizes, baseline storage and the comparison engine",
        "Configure screenshot capture, animation handling and masking utilities",
        "Write the tool configuration files",
        "Verify the installation with a sample test",
    ],
    output_format="JSON object with tool setup details",
    properties={
        "success": BOOLEAN,
        "toolsInstalled": array_of(STRING),
        "toolConfig": object_with(
            {
                "tool": STRING,
                "framework": STRING,
                "configFilePath": STRING,
                "baselineDir": STRING,
                "comparisonDir": STRING,
                "reportDir": STRING,
            }
        ),
        "thresholdSettings": OBJECT,
        "captureSettings": OBJECT,
        "helperUtilitiesPath": STRING,
        "sampleTestPath": STRING,
    },
    required=["success", "toolsInstalled", "toolConfig"],
    labels=["visual-regression", "tool-setup", "configuration"],
    failure_message="Visual regression tool setup failed",
)

viewport_configuration = agent_task(
    "visual-regression/viewport-configuration",
    title="Phase 3: Viewport Configuration - {projectName}",
    role="Responsive Testing Specialist",
    task="Configure viewports and responsive breakpoints for visual testing",
    instructions=[
        "Define mobile, tablet and desktop viewport configurations",
        "Add the custom viewports",
        "Configure pixel ratio, orientation and user agents",
        "Generate the viewport configuration file",
    ],
    output_format="JSON object with configured viewports",
    properties={
        "viewports": array_of(
            object_with(
                {"name": STRING, "width": NUMBER, "height": NUMBER, "deviceScaleFactor": NUMBER, "isMobile": BOOLEAN},
                required=["name"],
            )
        ),
        "totalViewports": INTEGER,
        "configurationPath": STRING,
    },
    required=["viewports"],
    labels=["visual-regression", "viewports", "responsive"],
)

content_masking = agent_task(
    "visual-regression/dynamic-content-masking",
    title="Phase 4: Dynamic Content Masking - {projectName}",
    role="Visual Testing Engineer",
    task="Implement masking strategy for dynamic and time-sensitive content",
    instructions=[
        "Identify dynamic content areas such as timestamps, counters and user data",
        "Create masking rules with CSS selectors for each dynamic area",
        "Stabilize or disable animations",
        "Configure wait conditions for asynchronous content",
    ],
    output_format="JSON object with masking rules",
    properties={
        "maskingRules": array_of(
            object_with(
                {
                    "name": STRING,
                    "selector": STRING,
                    "maskType": {"type": "string", "enum": ["hide", "blur", "overlay", "placeholder"]},
                    "reason": STRING,
                }
            )
        ),
        "animationHandling": OBJECT,
        "waitConditions": ARRAY,
        "maskingUtilitiesPath": STRING,
    },
    required=["maskingRules"],
    labels=["visual-regression", "masking", "dynamic-content"],
)

page_baselines = agent_task(
    "visual-regression/capture-page-baselines",
    title="Phase 5: Capture Baselines - {page}",
    role="Visual Testing Engineer",
    task="Capture visual baseline screenshots for specified page",
    instructions=[
        "Navigate to the page and wait for network idle",
        "Apply the masking rules and disable animations",
        "Capture one baseline per viewport using the page_viewport.png convention",
        "Write a baseline manifest",
    ],
    output_format="JSON object with baseline capture results",
    properties={
        "page": STRING,
        "baselinesCaptured": INTEGER,
        "baselines": ARRAY,
        "baselinePath": STRING,
        "sampleImagePath": STRING,
        "manifestPath": STRING,
    },
    required=["baselinesCaptured", "baselinePath"],
    labels=["visual-regression", "baseline", "page"],
)

component_baselines = agent_task(
    "visual-regression/capture-component-baselines",
    title="Phase 5: Capture Component Baselines - {component}",
    role="Component Testing Engineer",
    task="Capture visual baseline screenshots for UI component in isolation",
    instructions=[
        "Render the component in isolation",
        "Capture default, hover, active and disabled states per viewport",
        "Use the component_state_viewport.png convention",
        "Write a component baseline manifest",
    ],
    output_format="JSON object with baseline capture results",
    properties={
        "component": STRING,
        "baselinesCaptured": INTEGER,
        "states": array_of(STRING),
        "baselines": ARRAY,
        "baselinePath": STRING,
    },
    required=["baselinesCaptured"],
    labels=["visual-regression", "baseline", "component"],
)

VISUAL_TEST = object_with(
    {
        "name": STRING,
        "testFilePath": STRING,
        "page": STRING,
        "component": STRING,
        "viewports": array_of(STRING),
        "baselineCount": INTEGER,
        "status": STRING,
    },
    required=["name"],
)

test_implementation = agent_task(
    "visual-regression/visual-test-implementation",
    title="Phase 6: Visual Test Implementation - {projectName}",
    role="Test Automation Engineer",
    task="Implement automated visual regression tests",
    instructions=[
        "Create visual test files for each page and component",
        "Apply masking and wait conditions before every capture",
        "Iterate over the configured viewports",
        "Assert visual differences against the baselines",
        "Verify the tests pass against the fresh baselines",
    ],
    output_format="JSON object with implemented visual tests",
    properties={
        "testCount": INTEGER,
        "visualTests": array_of(VISUAL_TEST),
        "testUtilitiesPath": STRING,
        "testOrganization": OBJECT,
    },
    required=["testCount", "visualTests"],
    labels=["visual-regression", "implementation"],
)

threshold_configuration = agent_task(
    "visual-regression/threshold-configuration",
    title="Phase 7: Threshold Configuration - {projectName}",
    role="Visual Testing Configuration Specialist",
    task="Configure thresholds and tolerance levels for visual differences",
    instructions=[
        "Define global pixel diff and layout shift thresholds",
        "Add per-test overrides for special cases",
        "Categorize differences as critical, major, minor or acceptable",
        "Define auto-approval rules for minor changes",
    ],
    output_format="JSON object with threshold configuration",
    properties={"configuration": OBJECT, "thresholdProfiles": ARRAY, "configurationPath": STRING},
    required=["configuration"],
    labels=["visual-regression", "thresholds"],
)

DIFFERENCE = object_with({"testName": STRING, "severity": SEVERITY, "diffPercentage": NUMBER, "diffImagePath": STRING})

visual_comparison = agent_task(
    "visual-regression/visual-comparison",
    title="Phase 8: Visual Comparison - {runType} - {projectName}",
    role="Visual Testing Engineer",
    task="Run visual comparison tests against baselines",
    instructions=[
        "Execute all visual regression tests",
        "Compare current screenshots with the baselines",
        "Classify each difference by severity",
        "Generate diff images and an HTML comparison report",
    ],
    output_format="JSON object with comparison results",
    properties={
        "totalTests": INTEGER,
        "passed": INTEGER,
        "failed": INTEGER,
        "differencesFound": INTEGER,
        "criticalDifferences": INTEGER,
        "topDifferences": array_of(DIFFERENCE),
        "diffImages": array_of(STRING),
        "reportPath": STRING,
    },
    required=["totalTests", "passed", "failed", "differencesFound", "reportPath"],
    labels=["visual-regression", "comparison", "execution"],
)

difference_analysis = agent_task(
    "visual-regression/visual-difference-analysis",
    title="Phase 9: Difference Analysis - {projectName}",
    role="Visual QA Analyst",
    task="Analyze and categorize visual differences",
    instructions=[
        "Review every difference from the comparison run",
        "Separate intentional changes from regressions and false positives",
        "Assign a severity to every regression",
        "Write a difference summary",
    ],
    output_format="JSON object with categorized differences",
    properties={
        "intentionalChanges": ARRAY,
        "regressions": array_of(DIFFERENCE),
        "falsePositives": ARRAY,
        "diffSummaryPath": STRING,
    },
    required=["intentionalChanges", "regressions", "falsePositives"],
    labels=["visual-regression", "analysis", "triage"],
)

baseline_update = agent_task(
    "visual-regression/baseline-update-strategy",
    title="Phase 10: Baseline Update Strategy - {projectName}",
    role="Visual Testing Lead",
    task="Plan baseline updates for intentional visual changes",
    instructions=[
        "List baselines that must be refreshed for intentional changes",
        "Apply the baseline strategy to the update process",
        "Write the update plan",
    ],
    output_format="JSON object with baseline update plan",
    properties={"updatesRequired": ARRAY, "affectedTests": ARRAY, "updatePlanPath": STRING},
    required=["updatesRequired", "affectedTests", "updatePlanPath"],
    labels=["visual-regression", "baseline", "maintenance"],
)

remediation = agent_task(
    "visual-regression/visual-regression-remediation",
    title="Phase 11: Regression Remediation - {projectName}",
    role="Visual QA Engineer",
    task="Create remediation plan for visual regressions",
    instructions=["Create remediation tasks", "Prioritize by severity", "Estimate effort", "Document fixes"],
    output_format="JSON with remediation plan",
    properties={"remediationTasks": ARRAY, "estimatedEffort": STRING, "reportPath": STRING},
    required=["remediationTasks", "estimatedEffort", "reportPath"],
    labels=["visual-regression", "remediation"],
)

false_positive_elimination = agent_task(
    "visual-regression/false-positive-elimination",
    title="Phase 12: False Positive Elimination - {projectName}",
    role="Visual Testing Engineer",
    task="Eliminate false positives through improved masking and thresholds",
    instructions=["Analyze false positives", "Adjust masking", "Tune thresholds", "Re-run tests"],
    output_format="JSON with elimination results",
    properties={"eliminatedCount": INTEGER, "adjustedMasks": ARRAY, "adjustedThresholds": ARRAY},
    required=["eliminatedCount"],
    labels=["visual-regression", "false-positives"],
)

cross_browser = agent_task(
    "visual-regression/cross-browser-visual-test",
    title="Phase 13: Cross-Browser Visual Testing - {projectName}",
    role="Cross-Browser Testing Engineer",
    task="Run visual tests across multiple browsers",
    instructions=["Run tests on each browser", "Compare cross-browser differences", "Document rendering variations"],
    output_format="JSON with cross-browser results",
    properties={"browserTestsRun": INTEGER, "crossBrowserDifferences": INTEGER, "browsers": ARRAY},
    required=["browserTestsRun", "crossBrowserDifferences"],
    labels=["visual-regression", "cross-browser"],
)

optimization = agent_task(
    "visual-regression/visual-test-optimization",
    title="Phase 14: Test Optimization - {projectName}",
    role="Performance Engineer",
    task="Optimize visual test execution performance",
    instructions=["Enable parallel execution", "Optimize screenshot capture", "Reduce test duration"],
    output_format="JSON with optimization results",
    properties={"speedupFactor": NUMBER, "optimizedExecutionTime": STRING, "optimizations": ARRAY},
    required=["speedupFactor", "optimizedExecutionTime"],
    labels=["visual-regression", "optimization"],
)

reporting = agent_task(
    "visual-regression/visual-regression-reporting",
    title="Phase 15: Reporting Setup - {projectName}",
    role="QA Reporting Specialist",
    task="Set up visual regression reporting and review workflow",
    instructions=["Generate HTML reports", "Create review dashboard", "Set up approval workflow"],
    output_format="JSON with reporting setup",
    properties={"mainReportPath": STRING, "dashboardUrl": STRING},
    required=["mainReportPath"],
    labels=["visual-regression", "reporting"],
)

cicd = agent_task(
    "visual-regression/visual-regression-cicd",
    title="Phase 16: CI/CD Integration - {projectName}",
    role="DevOps Engineer",
    task="Integrate visual regression testing into CI/CD pipeline",
    instructions=["Create pipeline config", "Set up quality gates", "Configure baseline management"],
    output_format="JSON with CI/CD integration",
    properties={"configured": BOOLEAN, "pipelineConfigPath": STRING, "qualityGatesEnabled": BOOLEAN},
    required=["configured", "pipelineConfigPath", "qualityGatesEnabled"],
    labels=["visual-regression", "cicd"],
)

documentation = agent_task(
    "visual-regression/visual-regression-documentation",
    title="Phase 17: Documentation - {projectName}",
    role="Technical Writer",
    task="Generate comprehensive visual regression testing documentation",
    instructions=["Create setup guide", "Write usage documentation", "Document troubleshooting"],
    output_format="JSON with documentation paths",
    properties={"setupGuidePath": STRING, "usageGuidePath": STRING, "troubleshootingPath": STRING},
    required=["setupGuidePath", "usageGuidePath", "troubleshootingPath"],
    labels=["visual-regression", "documentation"],
)

validation = agent_task(
    "visual-regression/visual-regression-validation",
    title="Phase 18: Final Validation - {projectName}",
    role="Visual QA Lead",
    task="Validate the visual regression setup against the acceptance criteria",
    instructions=[
        "Check baseline completeness and test coverage",
        "Compare differences and regressions with the acceptance criteria",
        "Score the setup from 0 to 100",
        "Decide whether the setup is production ready",
    ],
    output_format="JSON object with validation results",
    properties={
        "validationScore": PERCENT,
        "productionReady": BOOLEAN,
        "verdict": STRING,
        "recommendation": STRING,
        "reportPath": STRING,
    },
    required=["validationScore", "productionReady", "verdict", "recommendation", "reportPath"],
    labels=["visual-regression", "validation"],
)


def _severity_count(items: List[Dict[str, Any]], severity: str) -> int:
    return sum(1 for item in items if item.get("severity") == severity)


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------


async def process(inputs: Inputs, ctx: ProcessContext) -> Dict[str, Any]:
    base = {"projectName": inputs.project_name, "outputDir": inputs.output_dir}
    criteria = inputs.acceptance_criteria

    ctx.log("info", f"Starting Visual Regression Testing Setup: {inputs.project_name}")
    ctx.log("info", f"Tool: {inputs.tool}, Framework: {inputs.framework}, Viewports: {', '.join(inputs.viewports)}")
    ctx.log("info", f"Pages: {len(inputs.pages)}, Components: {len(inputs.components)}")

    # Phase 1
    plan = await ctx.task(
        strategy,
        {
            **base,
            "applicationUrl": inputs.application_url,
            "pages": inputs.pages,
            "components": inputs.components,
            "framework": inputs.framework,
            "tool": inputs.tool,
            "viewports": inputs.viewports,
            "baselineStrategy": inputs.baseline_strategy,
            "thresholds": inputs.thresholds,
            "crossBrowserTesting": inputs.cross_browser_testing,
            "browsers": inputs.browsers,
        },
    )
    await ctx.breakpoint(
        question=(
            f"Visual regression strategy planned. Tool: {inputs.tool}, {plan['totalScenarios']} test scenarios "
            f"identified across {len(inputs.viewports)} viewport(s). Baseline strategy: {inputs.baseline_strategy}. "
            "Review and approve strategy?"
        ),
        title="Visual Regression Strategy Review",
        context={
            "strategy": {
                "tool": inputs.tool,
                "framework": inputs.framework,
                "totalScenarios": plan["totalScenarios"],
                "viewports": inputs.viewports,
                "baselineStrategy": inputs.baseline_strategy,
                "estimatedBaselines": plan["estimatedBaselines"],
            },
            "testCoverage": plan["testCoverage"],
            "files": artifact_files(plan.artifacts, default_format="markdown"),
        },
    )

    # Phase 2
    tools = await ctx.task(
        tool_setup,
        {
            **base,
            "tool": inputs.tool,
            "framework": inputs.framework,
            "viewports": inputs.viewports,
            "thresholds": inputs.thresholds,
            "maskDynamicContent": inputs.mask_dynamic_content,
            "animationHandling": inputs.animation_handling,
            "crossBrowserTesting": inputs.cross_browser_testing,
            "browsers": inputs.browsers,
            "captureFullPage": inputs.capture_full_page,
        },
    )
    tool_config = tools["toolConfig"]
    ctx.log("info", f"Tool setup complete: {', '.join(tools['toolsInstalled'])}")

    # Phase 3
    viewport_config = await ctx.task(
        viewport_configuration,
        {**base, "viewports": inputs.viewports, "customViewports": inputs.custom_viewports, "tool": tool_config},
    )
    viewports = viewport_config["viewports"]
    ctx.log("info", f"Configured {len(viewports)} viewport(s) for testing")

    # Phase 4
    masking = await ctx.task(
        content_masking,
        {
            **base,
            "pages": inputs.pages,
            "components": inputs.components,
            "maskDynamicContent": inputs.mask_dynamic_content,
            "animationHandling": inputs.animation_handling,
            "tool": tool_config,
        },
    )
    masking_rules = masking["maskingRules"]

    # Phase 5: one capture per page, then per component, in input order
    page_results: List[tuple[str, PhaseResult]] = []
    for page in inputs.pages:
        ctx.log("info", f"Capturing baselines for page: {page}")
        captured = await ctx.task(
            page_baselines,
            {
                **base,
                "page": page,
                "applicationUrl": inputs.application_url,
                "viewports": viewports,
                "maskingStrategy": masking_rules,
                "tool": tool_config,
                "captureFullPage": inputs.capture_full_page,
            },
            key=f"capture-page-baselines:{page}",
        )
        page_results.append((page, captured))
        ctx.log("info", f"Page {page}: {captured['baselinesCaptured']} baseline(s) captured")

    component_results: List[tuple[str, PhaseResult]] = []
    for component in inputs.components:
        ctx.log("info", f"Capturing baselines for component: {component}")
        captured = await ctx.task(
            component_baselines,
            {**base, "component": component, "viewports": viewports, "tool": tool_config},
            key=f"capture-component-baselines:{component}",
        )
        component_results.append((component, captured))

    baselines_captured = sum(r["baselinesCaptured"] for _, r in page_results + component_results)
    ctx.log("info", f"Total baselines captured: {baselines_captured}")

    await ctx.breakpoint(
        question=(
            f"Baseline capture complete. {baselines_captured} baseline images captured across "
            f"{len(inputs.pages)} page(s) and {len(inputs.components)} component(s). "
            "Review baselines and approve to proceed with visual tests?"
        ),
        title="Baseline Capture Review",
        context={
            "baselines": {
                "total": baselines_captured,
                "pages": len(page_results),
                "components": len(component_results),
                "viewportsPerTest": len(viewports),
            },
            "baselineLocations": [
                {"name": name, "count": r["baselinesCaptured"], "path": r.get("baselinePath")}
                for name, r in page_results + component_results
            ],
            "files": [
                {"path": r.get("sampleImagePath"), "format": "image", "label": f"Baseline: {name}"}
                for name, r in page_results[:5]
                if r.get("sampleImagePath")
            ],
        },
    )

    # Phase 6
    implementation = await ctx.task(
        test_implementation,
        {
            **base,
            "pages": inputs.pages,
            "components": inputs.components,
            "viewports": viewports,
            "baselineResults": [{"page": p, "result": r.to_dict()} for p, r in page_results],
            "componentBaselineResults": [{"component": c, "result": r.to_dict()} for c, r in component_results],
            "tool": tool_config,
            "maskingStrategy": masking_rules,
            "framework": inputs.framework,
        },
    )
    visual_tests: List[Dict[str, Any]] = list(implementation["visualTests"])
    ctx.log("info", f"{implementation['testCount']} visual regression test(s) implemented")

    # Phase 7
    thresholds = await ctx.task(
        threshold_configuration,
        {
            **base,
            "thresholds": inputs.thresholds,
            "acceptanceCriteria": criteria,
            "tool": tool_config,
            "visualTests": visual_tests,
        },
    )

    # Phase 8
    comparison = await ctx.task(
        visual_comparison,
        {
            **base,
            "applicationUrl": inputs.application_url,
            "visualTests": visual_tests,
            "thresholdConfig": thresholds["configuration"],
            "tool": tool_config,
            "runType": "initial",
        },
        key="initial-comparison",
    )
    total_differences = comparison["differencesFound"]
    critical_differences = comparison.get("criticalDifferences", 0)
    ctx.log("info", f"Initial comparison: {total_differences} difference(s) found, {critical_differences} critical")

    if total_differences > 0:
        await ctx.breakpoint(
            question=(
                f"Initial visual comparison found {total_differences} difference(s), including "
                f"{critical_differences} critical difference(s). This is expected for first run. "
                "Review differences and approve to continue?"
            ),
            title="Initial Visual Comparison Results",
            context={
                "comparison": {
                    "totalTests": comparison["totalTests"],
                    "passed": comparison["passed"],
                    "failed": comparison["failed"],
                    "differences": total_differences,
                    "criticalDifferences": critical_differences,
                },
                "topDifferences": list(comparison.get("topDifferences", []))[:10],
                "files": [
                    {"path": comparison["reportPath"], "format": "html", "label": "Visual Comparison Report"},
                    *(
                        {"path": img, "format": "image", "label": "Diff"}
                        for img in list(comparison.get("diffImages", []))[:5]
                    ),
                ],
            },
        )

    # Phase 9
    analysis = await ctx.task(
        difference_analysis,
        {**base, "comparisonResults": comparison.to_dict(), "thresholds": inputs.thresholds, "acceptanceCriteria": criteria},
    )
    intentional = list(analysis["intentionalChanges"])
    regressions: List[Dict[str, Any]] = list(analysis["regressions"])
    false_positives = list(analysis["falsePositives"])
    ctx.log(
        "info",
        f"Analysis: {len(intentional)} intentional, {len(regressions)} regressions, "
        f"{len(false_positives)} false positives",
    )

    # Phase 10
    updates = await ctx.task(
        baseline_update,
        {
            **base,
            "differenceAnalysis": analysis.to_dict(),
            "baselineStrategy": inputs.baseline_strategy,
            "acceptanceCriteria": criteria,
            "tool": tool_config,
        },
    )
    updates_required = list(updates["updatesRequired"])
    if updates_required:
        await ctx.breakpoint(
            question=(
                f"{len(updates_required)} baseline(s) require update based on intentional changes. "
                "Review updates and approve baseline refresh?"
            ),
            title="Baseline Update Approval",
            context={
                "updates": {
                    "count": len(updates_required),
                    "intentionalChanges": len(intentional),
                    "affectedTests": updates["affectedTests"],
                },
                "updatesRequired": updates_required,
                "files": [{"path": updates["updatePlanPath"], "format": "markdown", "label": "Update Plan"}],
            },
        )

    # Phase 11
    remediation_result = None
    if regressions:
        remediation_result = await ctx.task(
            remediation, {**base, "regressions": regressions, "differenceAnalysis": analysis.to_dict()}
        )
        await ctx.breakpoint(
            question=(
                f"{len(regressions)} visual regression(s) detected. Review regressions and remediation plan. "
                "Approve to continue or halt for fixes?"
            ),
            title="Visual Regression Detected",
            context={
                "regressions": {
                    "count": len(regressions),
                    "critical": _severity_count(regressions, "critical"),
                    "high": _severity_count(regressions, "high"),
                },
                "topRegressions": regressions[:10],
                "remediationPlan": remediation_result["remediationTasks"],
                "files": [
                    {"path": remediation_result["reportPath"], "format": "markdown", "label": "Regression Report"},
                    *(
                        {"path": r["diffImagePath"], "format": "image", "label": f"Regression: {r.get('testName')}"}
                        for r in regressions[:3]
                        if r.get("diffImagePath")
                    ),
                ],
            },
        )

    # Phase 12
    eliminated = await ctx.task(
        false_positive_elimination,
        {
            **base,
            "falsePositives": false_positives,
            "thresholdConfig": thresholds["configuration"],
            "maskingStrategy": masking_rules,
            "tool": tool_config,
        },
    )
    ctx.log("info", f"{eliminated['eliminatedCount']} false positive(s) eliminated")

    # Phase 13
    cross_browser_result = None
    if inputs.cross_browser_testing:
        cross_browser_result = await ctx.task(
            cross_browser,
            {
                **base,
                "applicationUrl": inputs.application_url,
                "visualTests": visual_tests,
                "browsers": inputs.browsers,
                "viewports": viewports,
                "tool": tool_config,
            },
        )
        ctx.log(
            "info",
            f"Cross-browser testing: {cross_browser_result['browserTestsRun']} test(s) "
            f"across {len(inputs.browsers)} browser(s)",
        )

    # Phase 14
    optimized = await ctx.task(
        optimization,
        {**base, "visualTests": visual_tests, "comparisonResults": comparison.to_dict(), "tool": tool_config},
    )
    ctx.log("info", f"Test optimization: {optimized['speedupFactor']}x faster execution")

    # Phase 15
    report = await ctx.task(
        reporting,
        {
            **base,
            "comparisonResults": comparison.to_dict(),
            "differenceAnalysis": analysis.to_dict(),
            "baselineUpdateStrategy": updates.to_dict(),
            "remediationResults": remediation_result.to_dict() if remediation_result else None,
            "crossBrowserResults": cross_browser_result.to_dict() if cross_browser_result else None,
            "testOptimization": optimized.to_dict(),
            "tool": tool_config,
        },
    )

    # Phase 16
    cicd_result = None
    if inputs.cicd_integration:
        cicd_result = await ctx.task(
            cicd,
            {
                **base,
                "tool": tool_config,
                "baselineStrategy": inputs.baseline_strategy,
                "thresholdConfig": thresholds["configuration"],
                "acceptanceCriteria": criteria,
                "visualTests": visual_tests,
            },
        )

    # Phase 17
    docs = await ctx.task(
        documentation,
        {
            **base,
            "tool": inputs.tool,
            "framework": inputs.framework,
            "strategyPlanning": plan.to_dict(),
            "toolSetup": tools.to_dict(),
            "viewportConfig": viewport_config.to_dict(),
            "maskingStrategy": masking.to_dict(),
            "thresholdConfig": thresholds.to_dict(),
            "baselineUpdateStrategy": updates.to_dict(),
            "testImplementation": implementation.to_dict(),
            "reportingSetup": report.to_dict(),
            "cicdIntegrationResult": cicd_result.to_dict() if cicd_result else None,
        },
    )

    # Phase 18
    final = await ctx.task(
        validation,
        {
            **base,
            "baselinesCaptured": baselines_captured,
            "visualTests": visual_tests,
            "comparisonResults": comparison.to_dict(),
            "differenceAnalysis": analysis.to_dict(),
            "regressions": regressions,
            "acceptanceCriteria": criteria,
            "cicdIntegrationResult": cicd_result.to_dict() if cicd_result else None,
        },
    )
    validation_score = final["validationScore"]
    production_ready = final["productionReady"]

    final_files = [
        {"path": report["mainReportPath"], "format": "html", "label": "Visual Regression Report"},
        {"path": docs["setupGuidePath"], "format": "markdown", "label": "Setup Guide"},
        {"path": final["reportPath"], "format": "markdown", "label": "Validation Report"},
    ]
    if analysis.get("diffSummaryPath"):
        final_files.append({"path": analysis["diffSummaryPath"], "format": "html", "label": "Difference Summary"})

    await ctx.breakpoint(
        question=(
            f"Visual Regression Testing Setup Complete! Validation score: {validation_score}/100. "
            f"{baselines_captured} baselines, {len(visual_tests)} tests, {len(regressions)} regressions. "
            f"Production ready: {production_ready}. Approve for deployment?"
        ),
        title="Visual Regression Setup Complete",
        context={
            "summary": {
                "projectName": inputs.project_name,
                "tool": inputs.tool,
                "framework": inputs.framework,
                "baselinesCaptured": baselines_captured,
                "totalTests": len(visual_tests),
                "viewports": len(inputs.viewports),
                "pages": len(inputs.pages),
                "components": len(inputs.components),
                "validationScore": validation_score,
                "productionReady": production_ready,
            },
            "results": {
                "totalDifferences": total_differences,
                "intentionalChanges": len(intentional),
                "regressions": len(regressions),
                "falsePositives": len(false_positives),
                "eliminatedFalsePositives": eliminated["eliminatedCount"],
            },
            "cicdIntegration": cicd_result["configured"] if cicd_result else False,
            "crossBrowserTesting": cross_browser_result["browserTestsRun"] if cross_browser_result else 0,
            "verdict": final["verdict"],
            "recommendation": final["recommendation"],
            "files": final_files,
        },
    )

    return build_output_record(
        ctx,
        {
            "projectName": inputs.project_name,
            "tool": inputs.tool,
            "framework": inputs.framework,
            "baselinesCaptured": baselines_captured,
            "comparisonResults": {
                "totalTests": comparison["totalTests"],
                "passed": comparison["passed"],
                "failed": comparison["failed"],
                "differences": total_differences,
                "criticalDifferences": critical_differences,
                "reportPath": comparison["reportPath"],
            },
            "visualTests": [
                {
                    "name": vt.get("name"),
                    "page": vt.get("page"),
                    "component": vt.get("component"),
                    "viewports": vt.get("viewports"),
                    "status": vt.get("status"),
                }
                for vt in visual_tests
            ],
            "differenceAnalysis": {
                "intentionalChanges": len(intentional),
                "regressions": len(regressions),
                "falsePositives": len(false_positives),
                "eliminatedFalsePositives": eliminated["eliminatedCount"],
            },
            "baselineUpdates": {"required": len(updates_required), "strategy": inputs.baseline_strategy},
            "remediation": (
                {
                    "regressionsFound": len(regressions),
                    "tasksCreated": len(remediation_result["remediationTasks"]),
                    "estimatedEffort": remediation_result["estimatedEffort"],
                }
                if remediation_result
                else None
            ),
            "crossBrowserTesting": (
                {
                    "enabled": True,
                    "browsers": len(inputs.browsers),
                    "testsRun": cross_browser_result["browserTestsRun"],
                    "differences": cross_browser_result["crossBrowserDifferences"],
                }
                if cross_browser_result
                else None
            ),
            "optimization": {
                "speedupFactor": optimized["speedupFactor"],
                "executionTime": optimized["optimizedExecutionTime"],
            },
            "cicdIntegration": (
                {
                    "configured": cicd_result["configured"],
                    "pipelinePath": cicd_result["pipelineConfigPath"],
                    "qualityGatesEnabled": cicd_result["qualityGatesEnabled"],
                }
                if cicd_result
                else None
            ),
            "validation": {
                "score": validation_score,
                "productionReady": production_ready,
                "verdict": final["verdict"],
                "recommendation": final["recommendation"],
            },
            "documentation": {
                "setupGuide": docs["setupGuidePath"],
                "usageGuide": docs["usageGuidePath"],
                "troubleshooting": docs["troubleshootingPath"],
            },
        },
        success=bool(production_ready),
        metadata={
            "tool": inputs.tool,
            "framework": inputs.framework,
            "viewports": len(inputs.viewports),
            "baselineStrategy": inputs.baseline_strategy,
        },
    )
