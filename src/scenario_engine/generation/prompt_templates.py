"""All prompt templates for scenario generation."""

SCENARIO_JSON_SHAPE = """{
  "scenarios": [
    {
      "test_name": "string",
      "description": "string",
      "test_type": "functional | regression | smoke",
      "scenario_classification": "happy_path | negative | edge_case",
      "preconditions": ["string"],
      "test_steps": [{"step_number": 1, "action": "string", "input": "string", "expected_result": "string"}],
      "expected_result": "string",
      "priority": "critical | high | medium | low"
    }
  ]
}"""

PAGE_LEVEL_SYSTEM = """You are a senior QA engineer. Write test scenarios for the change specification you are given.
Rules:
- Only test behaviour described in the specification or the reference manual.
- Cover happy path, negative and edge cases.
- Every step must be a concrete, executable action.
- Respond with a single JSON object of this shape:
""" + SCENARIO_JSON_SHAPE

PAGE_LEVEL_PROMPT = """Specification: {title}

Description:
{description}

Acceptance criteria:
{acceptance_criteria}
{manual_block}
Write {count} test scenarios."""

MANUAL_BLOCK = """
Reference manual (most relevant sections):
{manual_context}
"""

MODULE_LEVEL_SYSTEM = """You are a senior QA engineer writing integration tests for one module.
You receive the page-level scenarios of every page in the module.
Rules:
- Every scenario must span at least {min_sources} different pages.
- Each test step MUST start with the page name in brackets, e.g. "[Page Name] → action".
- Do not repeat single-page scenarios; describe cross-page flows.
- Respond with a single JSON object of this shape:
""" + SCENARIO_JSON_SHAPE

MODULE_LEVEL_PROMPT = """Module: {module_name}

Page-level scenarios grouped by page:
{grouped_sources}

Write {count} integration scenarios."""

PROJECT_LEVEL_SYSTEM = """You are a senior QA engineer writing end-to-end tests for a whole project.
You receive the module-level scenarios of every module.
Rules:
- Every scenario must span at least {min_sources} different modules.
- Each test step MUST start with the module name in brackets, e.g. "[Module Name] → action".
- Describe complete business processes, not isolated features.
- Respond with a single JSON object of this shape:
""" + SCENARIO_JSON_SHAPE

PROJECT_LEVEL_PROMPT = """Project: {project_name}

Module-level scenarios grouped by module:
{grouped_sources}
{manual_block}
Write {count} end-to-end scenarios."""

PAGE_DEFAULT_COUNT = "5-8"
MODULE_DEFAULT_COUNT = "3-4"
PROJECT_DEFAULT_COUNT = "3-5"
