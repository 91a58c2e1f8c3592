"""
EnsembleComp test suite.

Tests are organized by module:
- test_models: Ensemble, selection, topology and result models
- test_selection: GROMACS index-group parsing
- test_structure: Trajectory and topology reading
- test_residue_index: Residue to atom index
- test_features: Feature arena construction and membership policies
- test_classification: Classifier training and the eta metric
- test_export: Eta tables and JSON output
- test_runner: Pipeline validation, stages and end-to-end comparisons
- test_cli: Command-line interface
"""
