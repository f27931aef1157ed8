"""Test automation metrics dashboard setup.

Defines KPIs, integrates test result sources, builds the data pipeline and
metrics engine, designs the dashboard, implements its widgets in parallel,
configures alerting and CI/CD reporting, deploys, validates data accuracy
and runs user acceptance.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from qaflow.engine.aggregator import build_output_record, meets
from qaflow.engine.gates import ThresholdGate
from qaflow.engine.results import artifact_files
from qaflow.engine.sequencer import Branch, ProcessContext
from qaflow.engine.tasks import (
    ARRAY,
    BOOLEAN,
    INTEGER,
    OBJECT,
    PERCENT,
    STRING,
    TaskDefinition,
    agent_task,
    array_of,
)
from qaflow.processes import PROCESS_PREFIX
from qaflow.processes._inputs import as_list, as_number, as_opt_str, as_str, merged

PROCESS_ID = PROCESS_PREFIX + "metrics-dashboard"
TITLE = "Test Automation Metrics Dashboard Setup"

DEFAULT_ALERTING: Dict[str, Any] = {
    "channels": ["slack"],
    "thresholds": {"passRate": 95, "flakinessRate": 5, "coverageMin": 80, "avgDuration": 600},
}

MIN_KPI_COUNT = 15
MIN_DATA_ACCURACY = 95
MIN_ACCEPTABLE_ACCURACY = 90
MIN_QUALITY_SCORE = 80


@dataclass(frozen=True)
class Inputs:
    project_name: str
    test_sources: List[Any] = field(default_factory=list)
    cicd_platform: str = "GitHub Actions"
    metrics_tools: List[str] = field(default_factory=lambda: ["Allure", "Grafana"])
    alerting_config: Dict[str, Any] = field(default_factory=lambda: merged(DEFAULT_ALERTING, None))
    historical_data_days: float = 90
    dashboard_type: str = "grafana"
    data_retention_days: float = 180
    output_dir: str = "qa-metrics-dashboard"

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Inputs":
        project_name = as_opt_str(raw.get("projectName"))
        if project_name is None:
            raise ValueError("metrics-dashboard requires 'projectName'")
        return cls(
            project_name=project_name,
            test_sources=as_list(raw.get("testSources")),
            cicd_platform=as_str(raw.get("cicdPlatform"), "GitHub Actions"),
            metrics_tools=as_list(raw.get("metricsTools"), ["Allure", "Grafana"]),
            alerting_config=merged(DEFAULT_ALERTING, raw.get("alertingConfig")),
            historical_data_days=as_number(raw.get("historicalDataDays"), 90),
            dashboard_type=as_str(raw.get("dashboardType"), "grafana"),
            data_retention_days=as_number(raw.get("dataRetentionDays"), 180),
            output_dir=as_str(raw.get("outputDir"), "qa-metrics-dashboard"),
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

metrics_requirements = agent_task(
    "metrics-dashboard/metrics-requirements",
    title="Phase 1: Metrics Requirements Definition - {projectName}",
    role="QA Metrics and Analytics Architect",
    task="Define the test automation metrics and KPIs",
    instructions=[
        "Define KPIs for execution, coverage, flakiness, performance, defects and ROI",
        "Give every KPI a formula, a target and a data source",
        "List metric categories that are still missing",
        "Pick the key metrics for the dashboard header",
    ],
    output_format="JSON object with KPI definitions",
    properties={
        "kpiCount": INTEGER,
        "categories": array_of(STRING),
        "keyMetrics": ARRAY,
        "missingCategories": array_of(STRING),
    },
    required=["kpiCount", "categories", "keyMetrics", "missingCategories"],
    labels=["metrics-dashboard", "requirements", "kpi"],
)

data_source_integration = agent_task(
    "metrics-dashboard/data-source-integration",
    title="Phase 2: Data Source Integration - {projectName}",
    role="Test Data Integration Engineer",
    task="Integrate test result data sources",
    instructions=[
        "Write a parser per test result format",
        "Pull results from the CI/CD platform",
        "Report sources that could not be integrated and why",
    ],
    output_format="JSON object with integration results",
    properties={
        "integratedSources": INTEGER,
        "failedSources": array_of(STRING),
        "parsers": ARRAY,
        "errors": ARRAY,
    },
    required=["integratedSources", "failedSources", "parsers", "errors"],
    labels=["metrics-dashboard", "integration", "data-sources"],
)

data_pipeline = agent_task(
    "metrics-dashboard/data-pipeline-setup",
    title="Phase 3: Data Pipeline Setup - {projectName}",
    role="Data Pipeline Engineer",
    task="Set up the metrics data pipeline and storage",
    instructions=[
        "Provision a time-series database",
        "Build ETL jobs from the integrated sources",
        "Backfill the historical data window",
        "Enforce the data retention period",
    ],
    output_format="JSON object with pipeline status",
    properties={
        "pipelineOperational": BOOLEAN,
        "databaseStatus": STRING,
        "etlStatus": STRING,
        "issues": array_of(STRING),
        "databaseType": STRING,
        "etlFrequency": STRING,
    },
    required=["pipelineOperational", "databaseStatus", "etlStatus", "issues"],
    labels=["metrics-dashboard", "pipeline", "storage"],
)

metrics_engine = agent_task(
    "metrics-dashboard/metrics-calculation-engine",
    title="Phase 4: Metrics Calculation Engine - {projectName}",
    role="Metrics Engineering Specialist",
    task="Build the metrics calculation engine",
    instructions=[
        "Implement a calculation function per KPI",
        "Expose the metrics through an API",
        "Verify calculations against hand-computed samples",
    ],
    output_format="JSON object with engine details",
    properties={"functionsImplemented": INTEGER, "apiEndpoints": ARRAY, "calculationAccuracy": PERCENT},
    required=["functionsImplemented", "apiEndpoints", "calculationAccuracy"],
    labels=["metrics-dashboard", "engine"],
)

dashboard_design = agent_task(
    "metrics-dashboard/dashboard-design",
    title="Phase 5: Dashboard UI Design - {projectName}",
    role="UI/UX Designer specializing in data visualization",
    task="Design the dashboard UI and layout",
    instructions=[
        "Group widgets into sections by audience",
        "Put the key metrics at the top",
        "Choose a chart type per metric",
        "Produce a mockup",
    ],
    output_format="JSON object with the dashboard design",
    properties={"sections": ARRAY, "widgetCount": INTEGER, "layout": STRING, "mockupPath": STRING},
    required=["sections", "widgetCount", "layout", "mockupPath"],
    labels=["metrics-dashboard", "design", "ui"],
)


def _widget_task(
    name: str,
    title: str,
    role: str,
    task: str,
    instructions: Sequence[str],
    fields: Mapping[str, Any],
) -> TaskDefinition:
    return agent_task(
        f"metrics-dashboard/{name}",
        title=title,
        role=role,
        task=task,
        instructions=instructions,
        output_format="JSON object with widget implementation details",
        properties={"implemented": BOOLEAN, **fields},
        required=["implemented", *fields],
        labels=["metrics-dashboard", "widget"],
    )


execution_widget = _widget_task(
    "execution-metrics-widget",
    "Phase 6: Test Execution Metrics Widget - {projectName}",
    "Dashboard Developer",
    "Implement the test execution metrics widget",
    ["Show pass, fail and skip counts per run", "Show pass rate over time", "Drill down to failed tests"],
    {"visualizations": ARRAY, "features": ARRAY},
)

coverage_widget = _widget_task(
    "coverage-metrics-widget",
    "Phase 6: Code Coverage Metrics Widget - {projectName}",
    "Dashboard Developer",
    "Implement the code coverage metrics widget",
    ["Show line, branch and function coverage", "Show coverage per module", "Highlight coverage drops"],
    {"coverageTypes": array_of(STRING), "visualizations": ARRAY},
)

flakiness_widget = _widget_task(
    "flakiness-metrics-widget",
    "Phase 6: Test Flakiness Metrics Widget - {projectName}",
    "Dashboard Developer",
    "Implement the test flakiness metrics widget",
    ["Detect flaky tests from pass/fail flips", "Rank the flakiest tests", "Show the flakiness rate over time"],
    {"detectionAlgorithm": STRING, "features": ARRAY},
)

performance_widget = _widget_task(
    "performance-metrics-widget",
    "Phase 6: Test Performance Metrics Widget - {projectName}",
    "Dashboard Developer",
    "Implement the test performance metrics widget",
    ["Show suite and test durations", "Rank the slowest tests", "Alert on duration regressions"],
    {"metricsTracked": array_of(STRING), "features": ARRAY},
)

quality_gates_widget = _widget_task(
    "quality-gates-widget",
    "Phase 6: Quality Gates Metrics Widget - {projectName}",
    "Dashboard Developer",
    "Implement the quality gates widget",
    ["Show the status of every quality gate", "Use the alerting thresholds as gate rules", "Show gate history"],
    {"gateRules": ARRAY, "features": ARRAY},
)

trend_widget = _widget_task(
    "trend-analysis-widget",
    "Phase 6: Trend Analysis Widget - {projectName}",
    "Dashboard Developer and Data Analyst",
    "Implement the trend analysis widget",
    ["Show trends over the historical data window", "Detect anomalies", "Compare releases"],
    {"trendsTracked": array_of(STRING), "features": ARRAY},
)

defect_widget = _widget_task(
    "defect-metrics-widget",
    "Phase 7: Defect Metrics Widget - {projectName}",
    "Dashboard Developer and Quality Analyst",
    "Implement the defect metrics widget",
    ["Show defect density and escape rate", "Show defects found by automation", "Show mean time to fix"],
    {"defectMetrics": ARRAY, "features": ARRAY},
)

roi_widget = _widget_task(
    "automation-roi-widget",
    "Phase 7: Test Automation ROI Widget - {projectName}",
    "Dashboard Developer and Business Analyst",
    "Implement the test automation ROI widget",
    ["Estimate manual effort saved", "Compare automation cost with savings", "Show ROI over time"],
    {"roiMetrics": ARRAY, "features": ARRAY},
)

alerting_system = agent_task(
    "metrics-dashboard/alerting-system",
    title="Phase 8: Alerting and Notification System - {projectName}",
    role="DevOps Engineer specializing in monitoring and alerting",
    task="Configure alerting and notifications",
    instructions=[
        "Create alert rules from the alerting thresholds",
        "Configure every notification channel",
        "Report channels that could not be configured",
    ],
    output_format="JSON object with alerting status",
    properties={
        "alertsConfigured": BOOLEAN,
        "configuredChannels": INTEGER,
        "alertRulesCreated": INTEGER,
        "failedChannels": array_of(STRING),
    },
    required=["alertsConfigured", "configuredChannels", "alertRulesCreated", "failedChannels"],
    labels=["metrics-dashboard", "alerting"],
)

cicd_integration = agent_task(
    "metrics-dashboard/cicd-dashboard-integration",
    title="Phase 9: CI/CD Integration - {projectName}",
    role="DevOps CI/CD Engineer",
    task="Integrate the dashboard with the CI/CD pipeline",
    instructions=[
        "Push test results to the pipeline after every run",
        "Post dashboard links on pull requests",
        "Automate periodic reports",
    ],
    output_format="JSON object with integration status",
    properties={"integrated": BOOLEAN, "automatedReporting": BOOLEAN, "features": ARRAY},
    required=["integrated", "automatedReporting", "features"],
    labels=["metrics-dashboard", "cicd"],
)

dashboard_deployment = agent_task(
    "metrics-dashboard/dashboard-deployment",
    title="Phase 10: Dashboard Deployment - {projectName}",
    role="DevOps Deployment Engineer",
    task="Deploy the dashboard",
    instructions=[
        "Deploy the dashboard with every implemented widget",
        "Configure access control",
        "Check the dashboard is reachable",
    ],
    output_format="JSON object with deployment status",
    properties={
        "dashboardAccessible": BOOLEAN,
        "dashboardUrl": STRING,
        "status": STRING,
        "issues": ARRAY,
        "dashboardConfigPath": STRING,
    },
    required=["dashboardAccessible", "dashboardUrl", "status", "issues"],
    labels=["metrics-dashboard", "deployment"],
)

data_validation = agent_task(
    "metrics-dashboard/data-validation",
    title="Phase 11: Data Validation - {projectName}",
    role="Quality Assurance Data Analyst",
    task="Populate sample data and validate metric accuracy",
    instructions=[
        "Load sample data through the pipeline",
        "Compare dashboard values with hand-computed values",
        "Report accuracy from 0 to 100 and list discrepancies",
    ],
    output_format="JSON object with validation results",
    properties={
        "validationPassed": BOOLEAN,
        "accuracy": PERCENT,
        "sampleDataLoaded": BOOLEAN,
        "accuracyIssues": array_of(STRING),
    },
    required=["validationPassed", "accuracy", "sampleDataLoaded", "accuracyIssues"],
    labels=["metrics-dashboard", "validation"],
)

documentation = agent_task(
    "metrics-dashboard/dashboard-documentation",
    title="Phase 12: Dashboard Documentation - {projectName}",
    role="Technical Writer specializing in data visualization",
    task="Write the dashboard documentation",
    instructions=["Write a user guide", "Write a metrics glossary", "Document the metrics API"],
    output_format="JSON object with documentation paths",
    properties={
        "userGuideCreated": BOOLEAN,
        "metricsGlossaryCreated": BOOLEAN,
        "apiDocsCreated": BOOLEAN,
        "userGuidePath": STRING,
        "metricsGlossaryPath": STRING,
    },
    required=["userGuideCreated", "metricsGlossaryCreated", "userGuidePath", "metricsGlossaryPath"],
    labels=["metrics-dashboard", "documentation"],
)

quality_assessment = agent_task(
    "metrics-dashboard/dashboard-quality-assessment",
    title="Phase 13: Dashboard Quality Assessment - {projectName}",
    role="Senior QA Architect and Dashboard Auditor",
    task="Score dashboard quality and completeness",
    instructions=[
        "Score every component",
        "Score the dashboard overall from 0 to 100",
        "Recommend improvements",
    ],
    output_format="JSON object with the quality assessment",
    properties={
        "overallScore": PERCENT,
        "componentScores": OBJECT,
        "recommendations": ARRAY,
        "assessmentReportPath": STRING,
    },
    required=["overallScore", "componentScores", "recommendations", "assessmentReportPath"],
    labels=["metrics-dashboard", "assessment"],
)

user_acceptance = agent_task(
    "metrics-dashboard/user-acceptance",
    title="Phase 14: User Acceptance and Training - {projectName}",
    role="QA Team Lead and Training Facilitator",
    task="Run user acceptance and training",
    instructions=["Walk the team through the dashboard", "Collect feedback", "List next steps"],
    output_format="JSON object with acceptance results",
    properties={
        "passed": BOOLEAN,
        "trainingCompleted": BOOLEAN,
        "feedbackCollected": BOOLEAN,
        "nextSteps": ARRAY,
        "trainingMaterialsPath": STRING,
    },
    required=["passed", "trainingCompleted", "feedbackCollected", "nextSteps", "trainingMaterialsPath"],
    labels=["metrics-dashboard", "uat", "training"],
)

# Phase 6 widget order; results come back in this order.
CORE_WIDGETS = (
    ("executionMetrics", execution_widget),
    ("coverageMetrics", coverage_widget),
    ("flakinessMetrics", flakiness_widget),
    ("performanceMetrics", performance_widget),
    ("qualityGates", quality_gates_widget),
    ("trendAnalysis", trend_widget),
)
INSIGHT_WIDGETS = (
    ("defectMetrics", defect_widget),
    ("automationROI", roi_widget),
)


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------


async def process(inputs: Inputs, ctx: ProcessContext) -> Dict[str, Any]:
    base = {"projectName": inputs.project_name, "outputDir": inputs.output_dir}
    alerting = inputs.alerting_config

    ctx.log("info", f"Starting Test Automation Metrics Dashboard Setup: {inputs.project_name}")
    ctx.log("info", f"Dashboard Type: {inputs.dashboard_type}, CI/CD: {inputs.cicd_platform}")
    ctx.log("info", f"Test Sources: {len(inputs.test_sources)} configured")

    # Phase 1
    requirements = await ctx.task(
        metrics_requirements, {**base, "testSources": inputs.test_sources, "alertingConfig": alerting}
    )
    await ctx.gate(
        ThresholdGate.below("kpi-count", MIN_KPI_COUNT),
        requirements["kpiCount"],
        title="Metrics Requirements Review",
        question=(
            f"Phase 1: Only {requirements['kpiCount']} KPIs defined (recommended: {MIN_KPI_COUNT}+). "
            f"Current categories: {', '.join(requirements['categories'])}. Add more metrics before proceeding?"
        ),
        context={
            "kpiCount": requirements["kpiCount"],
            "categories": requirements["categories"],
            "missingCategories": requirements["missingCategories"],
            "files": artifact_files(requirements.artifacts),
        },
    )

    # Phase 2
    sources = await ctx.task(
        data_source_integration,
        {
            **base,
            "testSources": inputs.test_sources,
            "cicdPlatform": inputs.cicd_platform,
            "metricsRequirements": requirements.to_dict(),
        },
    )
    await ctx.gate(
        ThresholdGate.below("integrated-sources", len(inputs.test_sources)),
        sources["integratedSources"],
        title="Data Source Integration Issues",
        question=(
            f"Phase 2: Only {sources['integratedSources']}/{len(inputs.test_sources)} test sources integrated. "
            f"Failed: {', '.join(sources['failedSources'])}. Fix integration issues?"
        ),
        context={
            "integratedSources": sources["integratedSources"],
            "failedSources": sources["failedSources"],
            "integrationErrors": sources["errors"],
            "files": artifact_files(sources.artifacts),
        },
    )

    # Phase 3
    pipeline = await ctx.task(
        data_pipeline,
        {
            **base,
            "dataSourceIntegration": sources.to_dict(),
            "metricsRequirements": requirements.to_dict(),
            "dataRetentionDays": inputs.data_retention_days,
            "historicalDataDays": inputs.historical_data_days,
        },
    )
    if not pipeline["pipelineOperational"]:
        await ctx.breakpoint(
            question=(
                f"Phase 3: Data pipeline not operational. Issues: {', '.join(pipeline['issues'])}. "
                f"Database: {pipeline['databaseStatus']}, ETL: {pipeline['etlStatus']}. Fix pipeline?"
            ),
            title="Data Pipeline Issues",
            context={
                "pipelineOperational": False,
                "databaseStatus": pipeline["databaseStatus"],
                "etlStatus": pipeline["etlStatus"],
                "issues": pipeline["issues"],
                "files": artifact_files(pipeline.artifacts),
            },
        )

    # Phase 4
    engine = await ctx.task(
        metrics_engine,
        {**base, "metricsRequirements": requirements.to_dict(), "dataPipeline": pipeline.to_dict()},
    )

    # Phase 5
    design = await ctx.task(
        dashboard_design,
        {
            **base,
            "dashboardType": inputs.dashboard_type,
            "metricsRequirements": requirements.to_dict(),
            "metricsEngine": engine.to_dict(),
        },
    )
    await ctx.breakpoint(
        question=(
            f"Phase 5 Complete: Dashboard designed with {design['widgetCount']} widgets across "
            f"{len(design['sections'])} sections. Layout: {design['layout']}. Approve design?"
        ),
        title="Dashboard Design Review",
        context={
            "sections": design["sections"],
            "widgetCount": design["widgetCount"],
            "layout": design["layout"],
            "mockupPath": design["mockupPath"],
            "files": artifact_files(design.artifacts, default_format="image"),
        },
    )

    widget_args = {
        **base,
        "metricsEngine": engine.to_dict(),
        "dashboardDesign": design.to_dict(),
        "dashboardType": inputs.dashboard_type,
    }
    extra_args = {
        "qualityGates": {"alertingConfig": alerting},
        "trendAnalysis": {"historicalDataDays": inputs.historical_data_days},
    }

    # Phase 6
    core = await ctx.parallel(
        [Branch(definition, {**widget_args, **extra_args.get(key, {})}) for key, definition in CORE_WIDGETS]
    )
    widgets = {key: result for (key, _), result in zip(CORE_WIDGETS, core)}
    ctx.log("info", "Dashboard widgets implemented: Execution, Coverage, Flakiness, Performance, Quality Gates, Trends")

    # Phase 7
    insights = await ctx.parallel([Branch(definition, widget_args) for _, definition in INSIGHT_WIDGETS])
    widgets.update({key: result for (key, _), result in zip(INSIGHT_WIDGETS, insights)})

    # Phase 8
    alerts = await ctx.task(
        alerting_system,
        {
            **base,
            "alertingConfig": alerting,
            "metricsEngine": engine.to_dict(),
            "qualityGatesResult": widgets["qualityGates"].to_dict(),
        },
    )
    if not alerts["alertsConfigured"]:
        await ctx.breakpoint(
            question=(
                f"Phase 8: Alerting not fully configured. {alerts['configuredChannels']}/"
                f"{len(alerting.get('channels') or [])} channels configured. Fix alerting?"
            ),
            title="Alerting Configuration Issues",
            context={
                "configuredChannels": alerts["configuredChannels"],
                "failedChannels": alerts["failedChannels"],
                "alertRulesCreated": alerts["alertRulesCreated"],
                "files": artifact_files(alerts.artifacts),
            },
        )

    # Phase 9
    cicd = await ctx.task(
        cicd_integration,
        {
            **base,
            "cicdPlatform": inputs.cicd_platform,
            "dataPipeline": pipeline.to_dict(),
            "metricsEngine": engine.to_dict(),
            "dashboardType": inputs.dashboard_type,
        },
    )

    # Phase 10
    deployment = await ctx.task(
        dashboard_deployment,
        {
            **base,
            "dashboardType": inputs.dashboard_type,
            "dashboardDesign": design.to_dict(),
            **{f"{key}Result": result.to_dict() for key, result in widgets.items()},
            "dataPipeline": pipeline.to_dict(),
            "cicdIntegration": cicd.to_dict(),
        },
    )
    dashboard_url = deployment["dashboardUrl"]
    if not deployment["dashboardAccessible"]:
        await ctx.breakpoint(
            question=(
                f"Phase 10: Dashboard deployed but not accessible. Deployment status: {deployment['status']}. "
                f"URL: {dashboard_url}. Debug deployment?"
            ),
            title="Dashboard Deployment Issues",
            context={
                "dashboardUrl": dashboard_url,
                "deploymentStatus": deployment["status"],
                "accessibilityIssues": deployment["issues"],
                "files": artifact_files(deployment.artifacts, default_format="log"),
            },
        )

    # Phase 11
    validated = await ctx.task(
        data_validation,
        {
            **base,
            "dashboardUrl": dashboard_url,
            "metricsEngine": engine.to_dict(),
            "dataPipeline": pipeline.to_dict(),
            "dataSourceIntegration": sources.to_dict(),
        },
    )
    accuracy = validated["accuracy"]
    await ctx.gate(
        ThresholdGate.below("data-accuracy", MIN_DATA_ACCURACY),
        accuracy,
        title="Data Accuracy Issues",
        question=(
            f"Phase 11: Data accuracy only {accuracy}% (target: {MIN_DATA_ACCURACY}%+). "
            f"Issues: {', '.join(validated['accuracyIssues'])}. Fix data pipeline?"
        ),
        context={
            "accuracy": accuracy,
            "accuracyIssues": validated["accuracyIssues"],
            "sampleDataLoaded": validated["sampleDataLoaded"],
            "files": artifact_files(validated.artifacts),
        },
    )

    # Phase 12
    docs = await ctx.task(
        documentation,
        {
            **base,
            "dashboardUrl": dashboard_url,
            "metricsRequirements": requirements.to_dict(),
            "dashboardDesign": design.to_dict(),
            "alertingSystem": alerts.to_dict(),
            "cicdIntegration": cicd.to_dict(),
        },
    )

    # Phase 13
    assessment = await ctx.task(
        quality_assessment,
        {
            **base,
            "metricsRequirements": requirements.to_dict(),
            "dataSourceIntegration": sources.to_dict(),
            "dataPipeline": pipeline.to_dict(),
            "dashboardDeployment": deployment.to_dict(),
            "dataValidation": validated.to_dict(),
            "alertingSystem": alerts.to_dict(),
            "documentation": docs.to_dict(),
        },
    )
    quality_score = assessment["overallScore"]
    quality_met = meets(quality_score, MIN_QUALITY_SCORE)
    ctx.log("info", f"Dashboard Quality Score: {quality_score}/100")

    # Phase 14
    acceptance = await ctx.task(
        user_acceptance,
        {
            **base,
            "dashboardUrl": dashboard_url,
            "documentation": docs.to_dict(),
            "metricsRequirements": requirements.to_dict(),
        },
    )

    final_files = [
        (deployment.get("dashboardConfigPath"), "json", "Dashboard Configuration"),
        (docs["userGuidePath"], "markdown", "User Guide"),
        (docs["metricsGlossaryPath"], "markdown", "Metrics Glossary"),
        (assessment["assessmentReportPath"], "markdown", "Quality Assessment"),
        (acceptance["trainingMaterialsPath"], "markdown", "Training Materials"),
    ]
    await ctx.breakpoint(
        question=(
            f"Test Automation Metrics Dashboard Complete for {inputs.project_name}! Quality Score: "
            f"{quality_score}/100. Dashboard URL: {dashboard_url}. {sources['integratedSources']} data sources "
            f"integrated, {alerts['alertRulesCreated']} alert rules configured. Dashboard quality: "
            f"{'EXCELLENT' if quality_met else 'ACCEPTABLE'}. Approve for production use?"
        ),
        title="Dashboard Setup Complete - Final Approval",
        context={
            "summary": {
                "projectName": inputs.project_name,
                "dashboardUrl": dashboard_url,
                "qualityScore": quality_score,
                "dashboardQualityMet": quality_met,
                "metricsCollected": requirements["kpiCount"],
                "dataSourcesIntegrated": sources["integratedSources"],
                "alertsConfigured": alerts["alertRulesCreated"],
                "dashboardType": inputs.dashboard_type,
                "dataAccuracy": accuracy,
                "userAcceptancePassed": acceptance["passed"],
            },
            "keyMetrics": requirements["keyMetrics"],
            "alertThresholds": alerting.get("thresholds"),
            "nextSteps": acceptance["nextSteps"],
            "files": [{"path": p, "format": f, "label": label} for p, f, label in final_files if p],
        },
    )

    return build_output_record(
        ctx,
        {
            "projectName": inputs.project_name,
            "dashboardUrl": dashboard_url,
            "dashboardType": inputs.dashboard_type,
            "qualityScore": quality_score,
            "dashboardQualityMet": quality_met,
            "metricsCollected": {
                "categories": requirements["categories"],
                "kpiCount": requirements["kpiCount"],
                "keyMetrics": requirements["keyMetrics"],
            },
            "dataSources": {
                "total": len(inputs.test_sources),
                "integrated": sources["integratedSources"],
                "failed": sources["failedSources"],
            },
            "dataPipeline": {
                "operational": pipeline["pipelineOperational"],
                "database": pipeline.get("databaseType"),
                "etlFrequency": pipeline.get("etlFrequency"),
                "retentionDays": inputs.data_retention_days,
            },
            "dashboardComponents": {key: result["implemented"] for key, result in widgets.items()},
            "alertsConfigured": {
                "total": alerts["alertRulesCreated"],
                "channels": alerts["configuredChannels"],
                "thresholds": alerting.get("thresholds"),
            },
            "cicdIntegration": {
                "platform": inputs.cicd_platform,
                "integrated": cicd["integrated"],
                "automatedReporting": cicd["automatedReporting"],
            },
            "dataValidation": {
                "accuracy": accuracy,
                "sampleDataLoaded": validated["sampleDataLoaded"],
                "validationPassed": validated["validationPassed"],
            },
            "documentation": {
                "userGuideCreated": docs["userGuideCreated"],
                "metricsGlossaryCreated": docs["metricsGlossaryCreated"],
                "apiDocsCreated": docs.get("apiDocsCreated", False),
            },
            "userAcceptance": {
                "passed": acceptance["passed"],
                "trainingCompleted": acceptance["trainingCompleted"],
                "feedbackCollected": acceptance["feedbackCollected"],
            },
        },
        success=quality_met and meets(accuracy, MIN_ACCEPTABLE_ACCURACY),
        metadata={
            "dashboardType": inputs.dashboard_type,
            "cicdPlatform": inputs.cicd_platform,
            "outputDir": inputs.output_dir,
        },
    )
