"""Learning Hub progress, prerequisite and gamification engine."""
