"""Agent surface: models, completion client, parser, tooling, compaction, runner."""
