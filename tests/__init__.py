"""
Test Suite for the API Convention Fixer
========================================

Test Structure:
    - test_naming.py, test_aggregation.py, test_authoring.py,
      test_matching.py, test_analyzer.py, test_orchestrator.py: core engine
    - test_status_code_analyzer.py, test_dotnet_scanner.py,
      test_dotnet_editor.py: C# host
    - test_project.py: end-to-end fixes on temporary projects
    - test_config.py, test_cli.py: configuration and command line
"""
