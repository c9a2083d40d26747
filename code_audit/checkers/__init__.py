"""
Static pattern checkers.

Contains:
- CompletenessPatternChecker - COMP001..COMP008
- PerformancePatternChecker - PERF001..PERF010
"""
