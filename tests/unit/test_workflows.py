import shutil
import tempfile
import unittest
from pathlib import Path
from flatten_repo.workflows import (
    WorkflowParams,
    render_frontend_workflow,
    render_master_pipeline,
    write_workflows,
    load_workflow,
    check_frontend_workflow,
    check_master_pipeline,
    verify_workflows,
    summary_exit_code,
    evaluate_condition,
    branch_context,
)

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"


class TestDefaultDocuments(unittest.TestCase):
    """Default parameters reproduce the checked-in workflow files exactly."""

    def test_frontend_workflow_text(self):
        expected = (FIXTURES / "front-end-workflow.yml").read_text(encoding="utf-8")
        self.assertEqual(render_frontend_workflow(WorkflowParams()), expected)

    def test_master_pipeline_text(self):
        expected = (FIXTURES / "master-pipeline.yml").read_text(encoding="utf-8")
        self.assertEqual(render_master_pipeline(WorkflowParams()), expected)


class TestFrontendWorkflow(unittest.TestCase):
    def setUp(self):
        self.doc = load_workflow(render_frontend_workflow(WorkflowParams()))

    def test_inputs(self):
        inputs = self.doc["on"]["workflow_call"]["inputs"]
        self.assertEqual(
            list(inputs),
            ["system-dir", "sonar-project-key", "sonar-organization", "coverage-threshold"],
        )
        self.assertTrue(inputs["system-dir"]["required"])
        self.assertFalse(inputs["sonar-organization"]["required"])
        self.assertEqual(inputs["sonar-organization"]["default"], "implementsprint")
        self.assertEqual(inputs["coverage-threshold"]["default"], 80)
        self.assertEqual(inputs["coverage-threshold"]["type"], "number")
        self.assertFalse(self.doc["on"]["workflow_call"]["secrets"]["SONAR_TOKEN"]["required"])

    def test_jobs_in_order(self):
        jobs = self.doc["jobs"]
        self.assertEqual(list(jobs), ["web-governance", "web-sonarcloud", "web-build"])
        self.assertEqual(jobs["web-sonarcloud"]["needs"], "web-governance")
        self.assertEqual(jobs["web-build"]["needs"], "web-sonarcloud")
        self.assertEqual(check_frontend_workflow(self.doc), [])

    def test_everything_runs_in_root(self):
        jobs = self.doc["jobs"]
        self.assertEqual(jobs["web-governance"]["with"]["working-directory"], ".")
        self.assertEqual(jobs["web-build"]["defaults"]["run"]["working-directory"], ".")
        scan = jobs["web-sonarcloud"]["steps"][2]
        self.assertEqual(scan["with"]["projectBaseDir"], ".")

    def test_build_artifact(self):
        upload = self.doc["jobs"]["web-build"]["steps"][-1]
        self.assertEqual(upload["uses"], "actions/upload-artifact@v4")
        self.assertEqual(upload["with"]["name"], "${{ inputs.system-dir }}-web-build")
        self.assertEqual(upload["with"]["path"], "dist")
        self.assertEqual(upload["with"]["retention-days"], 14)

    def test_expressions_are_literal(self):
        text = render_frontend_workflow(WorkflowParams())
        self.assertIn("coverage-threshold: ${{ inputs.coverage-threshold }}", text)
        self.assertIn("SONAR_TOKEN: ${{ secrets.SONAR_TOKEN }}", text)
        self.assertNotIn("{{{{", text)

    def test_custom_params(self):
        params = WorkflowParams(sonar_organization="acme", coverage_threshold=65, node_version=22)
        doc = load_workflow(render_frontend_workflow(params))
        self.assertEqual(doc["on"]["workflow_call"]["inputs"]["sonar-organization"]["default"], "acme")
        self.assertEqual(doc["on"]["workflow_call"]["inputs"]["coverage-threshold"]["default"], 65)
        self.assertEqual(doc["jobs"]["web-build"]["steps"][1]["with"]["node-version"], 22)

    def test_missing_job_is_reported(self):
        del self.doc["jobs"]["web-sonarcloud"]
        problems = check_frontend_workflow(self.doc)
        self.assertTrue(problems)


class TestMasterPipeline(unittest.TestCase):
    def setUp(self):
        self.params = WorkflowParams()
        self.doc = load_workflow(render_master_pipeline(self.params))

    def test_jobs(self):
        jobs = self.doc["jobs"]
        self.assertEqual(list(jobs), ["campusone-web", "deploy-staging-campusone-web", "pipeline-summary"])
        self.assertEqual(jobs["campusone-web"]["uses"], "./.github/workflows/front-end-workflow.yml")
        self.assertEqual(jobs["campusone-web"]["with"]["system-dir"], "CampusOne-Web")
        self.assertEqual(jobs["campusone-web"]["secrets"], "inherit")
        self.assertEqual(jobs["deploy-staging-campusone-web"]["with"]["artifact-name"], "CampusOne-Web-web-build")
        self.assertEqual(check_master_pipeline(self.doc, self.params), [])

    def test_triggers_and_concurrency(self):
        self.assertEqual(self.doc["on"]["push"]["branches"], ["**"])
        self.assertEqual(self.doc["on"]["pull_request"]["branches"], ["main", "develop"])
        self.assertEqual(self.doc["permissions"], {"contents": "read", "packages": "write"})
        self.assertEqual(self.doc["concurrency"]["group"], "master-pipeline-${{ github.ref }}")
        self.assertTrue(self.doc["concurrency"]["cancel-in-progress"])

    def test_deploy_only_on_main_and_develop(self):
        condition = self.doc["jobs"]["deploy-staging-campusone-web"]["if"]
        self.assertTrue(evaluate_condition(condition, branch_context("main")))
        self.assertTrue(evaluate_condition(condition, branch_context("develop")))
        for branch in ["feature/login", "main-backup", "release", "Develop2"]:
            self.assertFalse(evaluate_condition(condition, branch_context(branch)), branch)
        self.assertFalse(evaluate_condition(condition, {"github": {"ref": "refs/tags/main"}}))
        self.assertFalse(evaluate_condition(condition, {"github": {"ref": "refs/pull/7/merge"}}))

    def test_summary_always_runs(self):
        summary = self.doc["jobs"]["pipeline-summary"]
        self.assertEqual(summary["needs"], "campusone-web")
        ctx = {"needs": {"campusone-web": {"result": "failure"}}}
        self.assertTrue(evaluate_condition(summary["if"], ctx))

    @unittest.skipUnless(shutil.which("bash"), "bash not available")
    def test_summary_fails_only_on_failure(self):
        self.assertNotEqual(summary_exit_code(self.doc, "failure"), 0)
        for result in ["success", "cancelled", "skipped"]:
            self.assertEqual(summary_exit_code(self.doc, result), 0, result)

    def test_other_system_name(self):
        params = WorkflowParams(system_dir="Admin Portal", sonar_project_key="org_admin")
        doc = load_workflow(render_master_pipeline(params))
        self.assertEqual(list(doc["jobs"]), ["admin-portal", "deploy-staging-admin-portal", "pipeline-summary"])
        self.assertEqual(check_master_pipeline(doc, params), [])

    def test_invalid_params(self):
        with self.assertRaises(ValueError):
            WorkflowParams(coverage_threshold=150)
        with self.assertRaises(ValueError):
            WorkflowParams(system_dir="***")

    def test_values_that_would_break_yaml(self):
        bad = [
            {"test_command": "npm test -- --grep 'login'"},
            {"sonar_organization": "it's"},
            {"system_dir": "Web: Admin"},
            {"system_dir": "Web #1"},
            {"sonar_project_key": "org_web:"},
            {"job_id": "needs.x"},
            {"deploy_branches": ["main", "it's"]},
            {"pr_branches": ["*main"]},
            {"frontend_file": "../web.yml"},
            {"master_file": "front-end-workflow.yml"},
        ]
        for kwargs in bad:
            with self.assertRaises(ValueError, msg=str(kwargs)):
                WorkflowParams(**kwargs)

        params = WorkflowParams(system_dir="Admin Portal", sonar_project_key="org:admin-portal",
                                pr_branches=["main", "release/**"])
        self.assertEqual(check_master_pipeline(load_workflow(render_master_pipeline(params)), params), [])


class TestWriteWorkflows(unittest.TestCase):
    def test_write_and_verify(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            workflows = root / ".github" / "workflows"
            workflows.mkdir(parents=True)
            (workflows / "master-pipeline.yml").write_text("name: old\n")

            written = write_workflows(root, WorkflowParams())

            self.assertEqual([p.name for p in written], ["front-end-workflow.yml", "master-pipeline.yml"])
            self.assertIn("Master Pipeline Orchestrator", (workflows / "master-pipeline.yml").read_text(encoding="utf-8"))
            self.assertEqual(verify_workflows(root), {"front-end-workflow.yml": [], "master-pipeline.yml": []})

    def test_dry_run_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_workflows(root, WorkflowParams(), dry_run=True)
            self.assertFalse((root / ".github").exists())
            results = verify_workflows(root)
            self.assertEqual(results["front-end-workflow.yml"], ["file not found"])

    def test_broken_yaml_is_reported(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            write_workflows(root, WorkflowParams())
            (root / ".github" / "workflows" / "front-end-workflow.yml").write_text("jobs: [unclosed\n")
            results = verify_workflows(root)
            self.assertTrue(results["front-end-workflow.yml"][0].startswith("invalid YAML"))
            self.assertEqual(results["master-pipeline.yml"], [])

    def test_custom_file_names(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            params = WorkflowParams(frontend_file="web-ci.yml", master_file="main.yml")
            written = write_workflows(root, params)

            self.assertEqual([p.name for p in written], ["web-ci.yml", "main.yml"])
            self.assertFalse((root / ".github" / "workflows" / "front-end-workflow.yml").exists())
            doc = load_workflow(root / ".github" / "workflows" / "main.yml")
            self.assertEqual(doc["jobs"]["campusone-web"]["uses"], "./.github/workflows/web-ci.yml")
            self.assertEqual(verify_workflows(root, params), {"web-ci.yml": [], "main.yml": []})

            # Checked against the default names, the caller points at the wrong file
            problems = check_master_pipeline(doc, WorkflowParams())
            self.assertTrue(any("front-end-workflow.yml" in p for p in problems))

if __name__ == "__main__":
    unittest.main()
