"""Provide prompt templates and rendering for the generation stages.

Templates live under the `prompts/` directory alongside
`prompts.prompt_renderer` (for example `prompts/<stage>/user.j2` and
`prompts/<stage>/system.md` or `system.j2`).
"""
