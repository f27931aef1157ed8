"""Quality gate implementation with enforcement, monitoring and continuous improvement.

Analyzes quality standards, defines gate criteria per SDLC stage, automates
the checks, wires them into CI/CD, sets up monitoring and an override
process, validates the result and plans a phased rollout when validation
passes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from qaflow.engine.aggregator import build_output_record
from qaflow.engine.sequencer import ProcessContext
from qaflow.engine.tasks import (
    ARRAY,
    BOOLEAN,
    INTEGER,
    OBJECT,
    PERCENT,
    STRING,
    agent_task,
    array_of,
    object_with,
)
from qaflow.processes import PROCESS_PREFIX
from qaflow.processes._inputs import as_list, as_opt_str, as_str, merged

PROCESS_ID = PROCESS_PREFIX + "quality-gates"
TITLE = "Quality Gate Implementation"

DEFAULT_STANDARDS: Dict[str, Any] = {
    "testCoverage": 80,
    "codeQuality": "A",
    "security": "high",
    "performance": "acceptable",
}
DEFAULT_GATE_TYPES = ["commit", "pull-request", "pre-merge", "pre-deployment", "post-deployment"]
DEFAULT_ENVIRONMENTS = ["development", "staging", "production"]

MIN_ROLLOUT_SCORE = 80


@dataclass(frozen=True)
class Inputs:
    project_path: str
    quality_standards: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_STANDARDS))
    gate_types: List[str] = field(default_factory=lambda: list(DEFAULT_GATE_TYPES))
    enforcement_level: str = "blocking"
    cicd_platform: str = "github-actions"
    target_environments: List[str] = field(default_factory=lambda: list(DEFAULT_ENVIRONMENTS))
    output_dir: str = "quality-gates-output"

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Inputs":
        project_path = as_opt_str(raw.get("projectPath"))
        if project_path is None:
            raise ValueError("quality-gates requires 'projectPath'")
        return cls(
            project_path=project_path,
            quality_standards=merged(DEFAULT_STANDARDS, raw.get("qualityStandards")),
            gate_types=as_list(raw.get("gateTypes"), DEFAULT_GATE_TYPES),
            enforcement_level=as_str(raw.get("enforcementLevel"), "blocking"),
            cicd_platform=as_str(raw.get("cicdPlatform"), "github-actions"),
            target_environments=as_list(raw.get("targetEnvironments"), DEFAULT_ENVIRONMENTS),
            output_dir=as_str(raw.get("outputDir"), "quality-gates-output"),
        )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

GATE = object_with(
    {
        "name": STRING,
        "type": STRING,
        "stage": STRING,
        "criteria": ARRAY,
        "automated": BOOLEAN,
        "blocking": BOOLEAN,
    },
    required=["name", "type", "criteria"],
)

analyze_standards = agent_task(
    "quality-gates/analyze-quality-standards",
    title="Analyze quality standards and requirements",
    agent_name="quality-standards-analyst",
    role="senior quality engineer and standards specialist",
    task=(
        "Analyze project quality requirements, industry benchmarks, and regulatory requirements "
        "to establish comprehensive quality standards baseline"
    ),
    instructions=[
        "Review project-specific quality requirements and constraints",
        "Research industry benchmarks for test coverage, code quality and security",
        "Identify applicable regulatory and compliance requirements",
        "Identify gaps between the current baseline and the target standards",
        "Map quality standards to gate types",
        "Define measurable criteria for each standard",
    ],
    output_format="JSON with industryBenchmarks, currentBaseline, gapAnalysis, recommendations and measurableCriteria",
    properties={
        "industryBenchmarks": OBJECT,
        "currentBaseline": OBJECT,
        "gapAnalysis": object_with(
            {"testCoverageGap": {"type": "number"}, "criticalGaps": array_of(STRING)}
        ),
        "recommendations": array_of(
            object_with(
                {
                    "category": STRING,
                    "recommendation": STRING,
                    "priority": {"type": "string", "enum": ["critical", "high", "medium", "low"]},
                }
            )
        ),
        "measurableCriteria": OBJECT,
        "regulatoryRequirements": array_of(STRING),
    },
    required=["industryBenchmarks", "gapAnalysis", "recommendations", "measurableCriteria"],
    labels=["quality-gates", "standards-analysis"],
)

define_gates = agent_task(
    "quality-gates/define-quality-gates",
    title="Define quality gate criteria and thresholds",
    agent_name="gate-architect",
    role="quality gate architect and process engineer",
    task=(
        "Design comprehensive quality gate framework with specific criteria, thresholds, "
        "and enforcement rules for each gate type"
    ),
    instructions=[
        "Commit gates run fast checks: lint, format, unit tests",
        "Pull request gates run all tests, coverage, code review and security scan",
        "Pre-merge gates run integration and performance tests",
        "Pre-deployment gates run smoke tests and check rollback readiness",
        "Post-deployment gates run health checks and rollback triggers",
        "Define measurable pass/fail criteria and thresholds for every gate",
        "Set the enforcement level and the bypass policy",
    ],
    output_format="JSON with gates, gatesByType, totalCriteria, automationCoverage and executionStrategy",
    properties={
        "gates": array_of(GATE),
        "gatesByType": OBJECT,
        "totalCriteria": INTEGER,
        "automationCoverage": PERCENT,
        "executionStrategy": OBJECT,
        "bypassPolicy": OBJECT,
    },
    required=["gates", "gatesByType", "totalCriteria", "automationCoverage"],
    labels=["quality-gates", "gate-definition"],
)

gate_automation = agent_task(
    "quality-gates/implement-gate-automation",
    title="Implement automated quality gate checks",
    agent_name="automation-engineer",
    role="DevOps automation engineer and quality tooling specialist",
    task="Implement automated quality gate checks using industry-standard tools",
    instructions=[
        "Integrate coverage, static analysis and security scanning tools",
        "Write gate check scripts with clear pass/fail exit codes",
        "Configure pre-commit and pre-push hooks",
        "Keep commit gates fast",
    ],
    output_format="JSON with toolsIntegrated, scriptsCreated, hooksConfigured and averageExecutionTime",
    properties={
        "toolsIntegrated": array_of(STRING),
        "scriptsCreated": array_of(STRING),
        "hooksConfigured": array_of(STRING),
        "configurations": OBJECT,
        "averageExecutionTime": STRING,
    },
    required=["toolsIntegrated", "scriptsCreated", "hooksConfigured", "averageExecutionTime"],
    labels=["quality-gates", "automation"],
)

cicd_integration = agent_task(
    "quality-gates/integrate-cicd",
    title="Integrate quality gates with CI/CD pipeline",
    agent_name="cicd-integration-specialist",
    role="CI/CD architect and pipeline engineer",
    task="Integrate quality gates into CI/CD pipelines with enforcement",
    instructions=[
        "Add gate stages to the pipelines of the CI/CD platform",
        "Configure required status checks on protected branches",
        "Run independent gates in parallel and fail fast on blocking gates",
        "Notify on gate failures",
    ],
    output_format="JSON with pipelinesModified, stagesAdded, parallelizationEnabled and failFastEnabled",
    properties={
        "pipelinesModified": array_of(STRING),
        "stagesAdded": array_of(STRING),
        "parallelizationEnabled": BOOLEAN,
        "failFastEnabled": BOOLEAN,
        "statusChecks": ARRAY,
        "notifications": OBJECT,
    },
    required=["pipelinesModified", "stagesAdded", "parallelizationEnabled", "failFastEnabled"],
    labels=["quality-gates", "cicd"],
)

monitoring = agent_task(
    "quality-gates/setup-monitoring",
    title="Setup quality gate monitoring and reporting",
    agent_name="monitoring-specialist",
    role="observability engineer and metrics specialist",
    task="Set up monitoring, dashboards and alerts for quality gate performance",
    instructions=[
        "Collect pass rates, execution times and override counts per gate",
        "Build dashboards per environment",
        "Alert on rising failure rates and slow gates",
        "Define the reporting cadence",
    ],
    output_format="JSON with dashboards, alerts, metricsCollected and reportingCadence",
    properties={
        "dashboards": ARRAY,
        "alerts": ARRAY,
        "metricsCollected": array_of(STRING),
        "reportingCadence": STRING,
        "slos": ARRAY,
    },
    required=["dashboards", "alerts", "metricsCollected", "reportingCadence"],
    labels=["quality-gates", "monitoring"],
)

exception_process = agent_task(
    "quality-gates/define-exception-process",
    title="Define exception handling and override process",
    agent_name="process-governance-specialist",
    role="quality governance and compliance specialist",
    task="Define the exception and override process for quality gates",
    instructions=[
        "Define when an override is allowed and who can approve it",
        "Design the approval workflow",
        "Log every override for audit",
        "Require remediation tickets for every override",
    ],
    output_format="JSON with overridePolicy, approvalWorkflow, auditLogging and authorizationMatrix",
    properties={
        "overridePolicy": OBJECT,
        "approvalWorkflow": OBJECT,
        "auditLogging": OBJECT,
        "authorizationMatrix": OBJECT,
        "remediationRequirements": ARRAY,
    },
    required=["overridePolicy", "approvalWorkflow", "auditLogging", "authorizationMatrix"],
    labels=["quality-gates", "governance"],
)

documentation = agent_task(
    "quality-gates/create-documentation",
    title="Create documentation and training materials",
    agent_name="technical-writer",
    role="senior technical writer and training specialist",
    task="Create documentation and training materials for the quality gates",
    instructions=[
        "Document every gate, its criteria and how to fix a failure",
        "Write a developer guide for running gates locally",
        "Create training material and an FAQ",
    ],
    output_format="JSON with documentationCreated, trainingMaterials, readmeFiles and faqCount",
    properties={
        "documentationCreated": array_of(STRING),
        "trainingMaterials": array_of(STRING),
        "readmeFiles": array_of(STRING),
        "faqCount": INTEGER,
    },
    required=["documentationCreated", "trainingMaterials", "faqCount"],
    labels=["quality-gates", "documentation"],
)

validate_implementation = agent_task(
    "quality-gates/validate-implementation",
    title="Validate quality gate implementation",
    agent_name="qa-validation-engineer",
    role="senior QA validation engineer",
    task="Validate the quality gate implementation end to end",
    instructions=[
        "Trigger every gate with passing and failing changes",
        "Check that blocking gates block and warnings only warn",
        "Check the override workflow and audit logs",
        "Score the implementation from 0 to 100",
    ],
    output_format="JSON with validationScore, overallSuccess, testsPassed, testsFailed, criticalIssues and warnings",
    properties={
        "validationScore": PERCENT,
        "overallSuccess": BOOLEAN,
        "testsPassed": INTEGER,
        "testsFailed": INTEGER,
        "criticalIssues": ARRAY,
        "warnings": ARRAY,
        "recommendations": ARRAY,
    },
    required=["validationScore", "overallSuccess", "testsPassed", "testsFailed"],
    labels=["quality-gates", "validation"],
)

rollout_plan = agent_task(
    "quality-gates/create-rollout-plan",
    title="Create phased rollout plan",
    agent_name="rollout-strategist",
    role="change management and rollout specialist",
    task="Plan a phased rollout of the quality gates across environments",
    instructions=[
        "Start with a pilot team in warning mode",
        "Move environments to blocking mode one at a time",
        "Define success criteria per phase and a rollback plan",
        "Plan communication with the affected teams",
    ],
    output_format="JSON with phases, timeline, successCriteria and rollbackPlan",
    properties={
        "phases": ARRAY,
        "timeline": OBJECT,
        "pilotTeam": STRING,
        "successCriteria": ARRAY,
        "rollbackPlan": OBJECT,
        "communicationPlan": ARRAY,
    },
    required=["phases", "timeline", "successCriteria", "rollbackPlan"],
    labels=["quality-gates", "rollout"],
)

continuous_improvement = agent_task(
    "quality-gates/setup-continuous-improvement",
    title="Setup continuous improvement process",
    agent_name="continuous-improvement-lead",
    role="continuous improvement and process optimization specialist",
    task="Establish a continuous improvement process for the quality gates",
    instructions=[
        "Define the gate review cadence",
        "Collect developer feedback on gate friction",
        "List threshold tuning and speed optimization opportunities",
        "Define gate effectiveness metrics",
    ],
    output_format="JSON with reviewCadence, feedbackLoop, optimizationOpportunities and effectivenessMetrics",
    properties={
        "reviewCadence": STRING,
        "feedbackLoop": OBJECT,
        "optimizationOpportunities": ARRAY,
        "effectivenessMetrics": ARRAY,
        "maintenanceSchedule": OBJECT,
    },
    required=["reviewCadence", "feedbackLoop", "optimizationOpportunities", "effectivenessMetrics"],
    labels=["quality-gates", "continuous-improvement"],
)


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------


async def process(inputs: Inputs, ctx: ProcessContext) -> Dict[str, Any]:
    base = {"projectPath": inputs.project_path, "outputDir": inputs.output_dir}

    ctx.log("info", "Starting Quality Gate Implementation Process")
    ctx.log("info", f"Project: {inputs.project_path}")
    ctx.log("info", f"Enforcement Level: {inputs.enforcement_level}")
    ctx.log("info", f"CI/CD Platform: {inputs.cicd_platform}")

    standards = await ctx.task(
        analyze_standards,
        {
            **base,
            "qualityStandards": inputs.quality_standards,
            "gateTypes": inputs.gate_types,
            "targetEnvironments": inputs.target_environments,
        },
    )

    definition = await ctx.task(
        define_gates,
        {
            **base,
            "qualityStandards": inputs.quality_standards,
            "gateTypes": inputs.gate_types,
            "standardsAnalysis": standards.to_dict(),
            "enforcementLevel": inputs.enforcement_level,
        },
    )
    gates: List[Dict[str, Any]] = list(definition["gates"])

    automation = await ctx.task(
        gate_automation,
        {**base, "gates": gates, "cicdPlatform": inputs.cicd_platform, "enforcementLevel": inputs.enforcement_level},
    )

    cicd = await ctx.task(
        cicd_integration,
        {
            **base,
            "gates": gates,
            "cicdPlatform": inputs.cicd_platform,
            "automation": automation.to_dict(),
            "enforcementLevel": inputs.enforcement_level,
        },
    )

    monitor = await ctx.task(
        monitoring,
        {**base, "gates": gates, "cicdPlatform": inputs.cicd_platform, "targetEnvironments": inputs.target_environments},
    )

    exceptions = await ctx.task(
        exception_process, {**base, "gates": gates, "enforcementLevel": inputs.enforcement_level}
    )

    await ctx.task(
        documentation,
        {
            **base,
            "gates": gates,
            "automation": automation.to_dict(),
            "cicdIntegration": cicd.to_dict(),
            "monitoringSetup": monitor.to_dict(),
            "exceptionProcess": exceptions.to_dict(),
        },
    )

    validation = await ctx.task(
        validate_implementation,
        {
            **base,
            "gates": gates,
            "automation": automation.to_dict(),
            "cicdIntegration": cicd.to_dict(),
            "monitoringSetup": monitor.to_dict(),
            "enforcementLevel": inputs.enforcement_level,
        },
    )
    implementation_success = validation["overallSuccess"]
    validation_score = validation["validationScore"]
    critical_issues = validation.get("criticalIssues", [])
    warnings = validation.get("warnings", [])

    await ctx.breakpoint(
        question=(
            f"Quality gates implementation complete. Validation score: {validation_score}/100. "
            f"{'All gates validated successfully!' if implementation_success else 'Some gates require attention.'} "
            "Review and approve?"
        ),
        title="Quality Gates Implementation Review",
        context={
            "files": [{**a.to_dict(), "format": a.format or "markdown"} for a in ctx.artifacts],
            "summary": {
                "validationScore": validation_score,
                "implementationSuccess": implementation_success,
                "gatesCount": len(gates),
                "enforcementLevel": inputs.enforcement_level,
                "cicdPlatform": inputs.cicd_platform,
                "totalArtifacts": len(ctx.artifacts),
                "criticalIssues": len(critical_issues),
                "warnings": len(warnings),
            },
        },
    )

    rollout = None
    if implementation_success and validation_score >= MIN_ROLLOUT_SCORE:
        ctx.log("info", "Phase 9: Creating phased rollout plan")
        rollout = await ctx.task(
            rollout_plan,
            {**base, "gates": gates, "validation": validation.to_dict(), "targetEnvironments": inputs.target_environments},
        )

    improvement = await ctx.task(
        continuous_improvement,
        {**base, "gates": gates, "monitoringSetup": monitor.to_dict(), "validation": validation.to_dict()},
    )

    return build_output_record(
        ctx,
        {
            "projectPath": inputs.project_path,
            "enforcementLevel": inputs.enforcement_level,
            "cicdPlatform": inputs.cicd_platform,
            "validationScore": validation_score,
            "gatesImplemented": [
                {
                    "name": g.get("name"),
                    "type": g.get("type"),
                    "stage": g.get("stage"),
                    "criteria": len(g.get("criteria") or []),
                    "automated": g.get("automated"),
                    "blocking": g.get("blocking"),
                }
                for g in gates
            ],
            "standardsAnalysis": {
                "industryBenchmarks": standards["industryBenchmarks"],
                "gapAnalysis": standards["gapAnalysis"],
                "recommendations": standards["recommendations"],
            },
            "gateDefinition": {
                "totalGates": len(gates),
                "gatesByType": definition["gatesByType"],
                "totalCriteria": definition["totalCriteria"],
                "automationCoverage": definition["automationCoverage"],
            },
            "automation": {
                "toolsIntegrated": automation["toolsIntegrated"],
                "scriptsCreated": automation["scriptsCreated"],
                "hooksConfigured": automation["hooksConfigured"],
                "executionTime": automation["averageExecutionTime"],
            },
            "cicdIntegration": {
                "pipelinesModified": cicd["pipelinesModified"],
                "stagesAdded": cicd["stagesAdded"],
                "parallelization": cicd["parallelizationEnabled"],
                "failFastEnabled": cicd["failFastEnabled"],
            },
            "monitoringSetup": {
                "dashboards": monitor["dashboards"],
                "alerts": monitor["alerts"],
                "metricsCollected": monitor["metricsCollected"],
                "reportingCadence": monitor["reportingCadence"],
            },
            "exceptionProcess": {
                "overridePolicy": exceptions["overridePolicy"],
                "approvalWorkflow": exceptions["approvalWorkflow"],
                "auditLogging": exceptions["auditLogging"],
            },
            "validation": {
                "overallScore": validation_score,
                "criticalIssues": critical_issues,
                "warnings": warnings,
                "testsPassed": validation["testsPassed"],
                "testsFailed": validation["testsFailed"],
            },
            "rolloutPlan": (
                {"phases": rollout["phases"], "timeline": rollout["timeline"], "rollbackPlan": rollout["rollbackPlan"]}
                if rollout
                else None
            ),
            "continuousImprovement": {
                "reviewCadence": improvement["reviewCadence"],
                "optimizationOpportunities": improvement["optimizationOpportunities"],
                "feedbackLoop": improvement["feedbackLoop"],
            },
        },
        success=bool(implementation_success),
        metadata={"projectPath": inputs.project_path, "outputDir": inputs.output_dir},
    )
