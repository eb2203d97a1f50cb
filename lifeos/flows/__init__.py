"""AI flows: prompt in, validated structured answer out."""
