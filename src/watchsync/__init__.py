"""Keep the viewers of a shared video session in step with a single host."""
