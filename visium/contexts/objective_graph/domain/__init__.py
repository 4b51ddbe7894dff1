"""Pure domain types: vocabulary, endpoint references, drafts and the extraction boundary."""
