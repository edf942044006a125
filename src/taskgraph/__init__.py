"""Task graph and scheduler: tasks, lists, dependencies, approval gates and goal decomposition."""
