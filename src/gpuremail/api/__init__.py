"""HTTP surface: routes, credential extraction and error mapping."""
