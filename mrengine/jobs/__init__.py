"""Built-in job files loadable with FunctionLoader."""
